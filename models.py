"""
Pydantic models for the lazy pipeline service.

Covers runtime settings, the declarative pipeline description accepted over
HTTP, and the response payloads.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from enum import Enum


class Backend(str, Enum):
    """Stage implementation used to evaluate a pipeline"""
    GENERATOR = "generator"
    PULL = "pull"


class StageType(str, Enum):
    TRANSFORM = "transform"
    SELECT = "select"
    LIMIT_UNTIL = "limit_until"
    TAKE = "take"


class TransformOp(str, Enum):
    """Named element transformations"""
    MULTIPLY = "multiply"
    ADD = "add"
    SUBTRACT = "subtract"
    SQUARE = "square"
    NEGATE = "negate"


class PredicateOp(str, Enum):
    """Named element predicates for select and limit_until"""
    DIVISIBLE_BY = "divisible_by"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class PipelineSettings(BaseModel):
    """Runtime configuration, usually loaded from the environment"""
    log_level: str = Field(
        "INFO",
        description="Level for the stage loggers; DEBUG prints the per-stage trace"
    )
    default_backend: Backend = Field(
        Backend.GENERATOR,
        description="Backend used when a request does not name one"
    )
    max_span: int = Field(
        1_000_000,
        description="Widest source range (stop - start) the service will evaluate",
        gt=0
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Normalize and check the level name"""
        level = str(v).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Valid levels: {list(LOG_LEVELS)}")
        return level


class StageSpec(BaseModel):
    """One stage of a declarative pipeline"""
    type: StageType = Field(..., description="Stage kind")
    op: Optional[str] = Field(
        None,
        description="Operator name for transform, select and limit_until stages"
    )
    operand: Optional[int] = Field(
        None,
        description="Right-hand operand for the operator, where it takes one"
    )
    count: Optional[int] = Field(
        None,
        description="Number of elements for take stages"
    )

    @model_validator(mode='after')
    def validate_stage_fields(self):
        """Each stage type needs its own fields"""
        if self.type == StageType.TAKE:
            if self.count is None:
                raise ValueError("take stages require count")
            return self

        if self.type == StageType.TRANSFORM:
            valid_ops = [op.value for op in TransformOp]
            unary_ops = (TransformOp.SQUARE.value, TransformOp.NEGATE.value)
        else:
            valid_ops = [op.value for op in PredicateOp]
            unary_ops = ()

        if self.op not in valid_ops:
            raise ValueError(f"Invalid op for {self.type.value}: {self.op}. Valid ops: {valid_ops}")
        if self.op not in unary_ops and self.operand is None:
            raise ValueError(f"Operator {self.op} requires operand")
        if self.op == PredicateOp.DIVISIBLE_BY.value and self.operand == 0:
            raise ValueError("divisible_by operand cannot be 0")
        return self


class PipelineRequest(BaseModel):
    """Source range plus the stages to apply, in order"""
    start: int = Field(..., description="First source value (inclusive)")
    stop: int = Field(..., description="End of the source range (exclusive)")
    stages: List[StageSpec] = Field(default_factory=list, description="Stages applied in order")
    backend: Optional[Backend] = Field(None, description="Overrides the configured backend")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "start": 0,
                "stop": 20,
                "stages": [
                    {"type": "transform", "op": "multiply", "operand": 10},
                    {"type": "select", "op": "divisible_by", "operand": 3},
                    {"type": "take", "count": 2}
                ],
                "backend": "pull"
            }
        }
    )

    @property
    def span(self) -> int:
        return max(self.stop - self.start, 0)


class PerformanceInfo(BaseModel):
    processing_time_ms: float = Field(..., description="Evaluation time in milliseconds", ge=0)
    memory_usage_mb: float = Field(..., description="Peak traced memory in MB", ge=0)


class PipelineResponse(BaseModel):
    """Materialized pipeline output"""
    ok: bool = Field(True, description="Evaluation success status")
    result: List[Any] = Field(..., description="Values produced, in order")
    count: int = Field(..., description="Number of values produced", ge=0)
    backend: Backend = Field(..., description="Backend that evaluated the pipeline")
    source_pulls: int = Field(
        ...,
        description="Elements drawn from the source while evaluating",
        ge=0
    )
    performance: PerformanceInfo


class MetricsResponse(BaseModel):
    total_operations: int = Field(..., ge=0)
    failed_operations: int = Field(..., ge=0)
    total_time_ms: float = Field(..., ge=0)
    total_memory_mb: float = Field(..., ge=0)
    avg_time_ms: float = Field(..., ge=0)
    avg_memory_mb: float = Field(..., ge=0)


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Overall health status")
    settings: PipelineSettings
    checks: Dict[str, bool] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error payload returned by the service"""
    ok: bool = Field(False, description="Always False for errors")
    error: str = Field(..., description="Human readable message")
    error_code: str = Field(..., description="Machine readable code")
    timestamp: str = Field(..., description="Error timestamp in ISO format")
