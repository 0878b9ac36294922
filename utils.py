"""
Utility functions for the lazy pipeline service.

Logging setup, settings loading, compilation of declarative stage specs into
callables, and performance measurement of pipeline runs.
"""

import gc
import logging
import os
import threading
import time
import tracemalloc
from typing import Any, Callable, Dict, List, Mapping, Optional

from lazy import LazyPipeline
from models import (
    Backend, PipelineRequest, PipelineSettings, PredicateOp, StageSpec,
    StageType, TransformOp
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STAGE_LOGGERS = ("lazy", "pull")

ENV_PREFIX = "LAZY_PIPELINE_"


def configure_logging(level: str) -> None:
    """Set the level of the stage loggers; DEBUG shows one line per value per stage"""
    for name in STAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> PipelineSettings:
    """Build settings from LAZY_PIPELINE_* environment variables"""
    if environ is None:
        environ = os.environ

    values: Dict[str, Any] = {}
    if f"{ENV_PREFIX}LOG_LEVEL" in environ:
        values["log_level"] = environ[f"{ENV_PREFIX}LOG_LEVEL"]
    if f"{ENV_PREFIX}BACKEND" in environ:
        values["default_backend"] = environ[f"{ENV_PREFIX}BACKEND"].strip().lower()
    if f"{ENV_PREFIX}MAX_SPAN" in environ:
        values["max_span"] = environ[f"{ENV_PREFIX}MAX_SPAN"]

    return PipelineSettings(**values)


# --------- stage compilation ----------

_TRANSFORMS: Dict[str, Callable[[Optional[int]], Callable[[Any], Any]]] = {
    TransformOp.MULTIPLY.value: lambda k: lambda x: x * k,
    TransformOp.ADD.value: lambda k: lambda x: x + k,
    TransformOp.SUBTRACT.value: lambda k: lambda x: x - k,
    TransformOp.SQUARE.value: lambda _k: lambda x: x * x,
    TransformOp.NEGATE.value: lambda _k: lambda x: -x,
}

_PREDICATES: Dict[str, Callable[[Optional[int]], Callable[[Any], bool]]] = {
    PredicateOp.DIVISIBLE_BY.value: lambda k: lambda x: x % k == 0,
    PredicateOp.GREATER_THAN.value: lambda k: lambda x: x > k,
    PredicateOp.LESS_THAN.value: lambda k: lambda x: x < k,
    PredicateOp.EQUALS.value: lambda k: lambda x: x == k,
}


def build_stage_function(stage: StageSpec) -> Callable[[Any], Any]:
    """Turn a transform/select/limit_until spec into the callable it names"""
    if stage.type == StageType.TRANSFORM:
        return _TRANSFORMS[stage.op](stage.operand)
    if stage.type in (StageType.SELECT, StageType.LIMIT_UNTIL):
        return _PREDICATES[stage.op](stage.operand)
    raise ValueError(f"Stage type {stage.type.value} has no function")


class SourceCounter:
    """Counts how many values are drawn from a wrapped source iterable"""

    def __init__(self):
        self.pulls = 0

    def count(self, iterable):
        for data in iterable:
            self.pulls += 1
            yield data


def build_pipeline(request: PipelineRequest, backend: Backend,
                   counter: Optional[SourceCounter] = None) -> LazyPipeline:
    """Assemble a LazyPipeline for a declarative request"""
    pipeline = LazyPipeline(backend)
    if counter is None:
        pipeline.source(request.start, request.stop)
    else:
        # Counted at the source so the trace shows no extra stage
        pipeline.from_iterable(counter.count(range(request.start, request.stop)))

    for stage in request.stages:
        if stage.type == StageType.TAKE:
            pipeline.take(stage.count)
        elif stage.type == StageType.TRANSFORM:
            pipeline.transform(build_stage_function(stage))
        elif stage.type == StageType.SELECT:
            pipeline.select(build_stage_function(stage))
        elif stage.type == StageType.LIMIT_UNTIL:
            pipeline.limit_until(build_stage_function(stage))

    return pipeline


# --------- performance tracking ----------

# Running totals only; the store has a fixed size however many runs it sees.
_metrics = {
    "runs": 0,
    "failures": 0,
    "time_ms": 0.0,
    "memory_mb": 0.0,
}


def _record(execution_time_ms: float, memory_usage_mb: float, success: bool) -> None:
    _metrics["runs"] += 1
    _metrics["time_ms"] += execution_time_ms
    _metrics["memory_mb"] += memory_usage_mb
    if not success:
        _metrics["failures"] += 1


_measure_lock = threading.Lock()


def measure_performance(operation_name: str, func, *args, **kwargs) -> Dict[str, Any]:
    """Run func with timing and memory tracking; the return value is under "result" """
    # tracemalloc is process-wide, so measured runs never overlap
    with _measure_lock:
        return _measure(operation_name, func, *args, **kwargs)


def _measure(operation_name: str, func, *args, **kwargs) -> Dict[str, Any]:
    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()

    try:
        result = func(*args, **kwargs)

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        current, peak = tracemalloc.get_traced_memory()
        memory_usage_mb = peak / 1024 / 1024
        _record(execution_time_ms, memory_usage_mb, success=True)

        return {
            "operation": operation_name,
            "execution_time_ms": execution_time_ms,
            "memory_usage_mb": memory_usage_mb,
            "success": True,
            "result_size": len(result) if hasattr(result, "__len__") else None,
            "result": result
        }

    except Exception as e:
        execution_time_ms = (time.perf_counter() - start_time) * 1000
        current, peak = tracemalloc.get_traced_memory()
        _record(execution_time_ms, peak / 1024 / 1024, success=False)
        logger.error(f"{operation_name} failed after {execution_time_ms:.2f}ms: {e}")
        raise

    finally:
        tracemalloc.stop()


def get_performance_summary() -> Dict[str, Any]:
    """Totals and per-run averages over every measured pipeline run"""
    runs = _metrics["runs"]
    return {
        "total_operations": runs,
        "failed_operations": _metrics["failures"],
        "total_time_ms": _metrics["time_ms"],
        "total_memory_mb": _metrics["memory_mb"],
        "avg_time_ms": _metrics["time_ms"] / runs if runs else 0.0,
        "avg_memory_mb": _metrics["memory_mb"] / runs if runs else 0.0,
    }


def clear_performance_metrics() -> None:
    _metrics.update(runs=0, failures=0, time_ms=0.0, memory_mb=0.0)


def run_pipeline(request: PipelineRequest, settings: PipelineSettings) -> Dict[str, Any]:
    """Evaluate a declarative pipeline and report what it produced and pulled"""
    backend = request.backend or settings.default_backend
    counter = SourceCounter()
    pipeline = build_pipeline(request, backend, counter)

    measured = measure_performance(f"pipeline_{backend.value}", pipeline.to_list)
    result: List[Any] = measured["result"]
    logger.info(
        f"Evaluated {len(request.stages)}-stage pipeline on [{request.start}, {request.stop}) "
        f"with {backend.value} backend: {len(result)} values, {counter.pulls} source pulls"
    )

    return {
        "ok": True,
        "result": result,
        "count": len(result),
        "backend": backend,
        "source_pulls": counter.pulls,
        "performance": {
            "processing_time_ms": measured["execution_time_ms"],
            "memory_usage_mb": measured["memory_usage_mb"]
        }
    }
