import datetime
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from utils import (
    configure_logging, load_settings, run_pipeline, get_performance_summary
)

from lazy import LazyPipeline
from models import (
    Backend, PipelineRequest, PipelineResponse, MetricsResponse,
    HealthCheckResponse, ErrorResponse
)

logger = logging.getLogger(__name__)

settings = load_settings()
configure_logging(settings.log_level)

app = FastAPI()


def _error(status_code: int, error: str, error_code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            error_code=error_code,
            timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat()
        ).model_dump()
    )


@app.post("/pipeline", response_model=PipelineResponse)
def evaluate_pipeline(request: PipelineRequest) -> PipelineResponse:
    """
    Evaluate a declarative pipeline over an integer range:
      - stages are applied lazily, in order
      - only as many source values are pulled as the stages need
      - the response reports the result and how many source values were drawn

    Evaluation is synchronous, so FastAPI runs this handler in its threadpool
    and the event loop keeps serving /health and /metrics. Runs are measured
    one at a time: a select that rejects every value of a max_span-wide range
    holds up later /pipeline requests until it finishes.
    """
    if request.span > settings.max_span:
        return _error(
            400,
            f"Range [{request.start}, {request.stop}) is wider than max_span={settings.max_span}",
            "RANGE_TOO_LARGE"
        )

    try:
        return PipelineResponse(**run_pipeline(request, settings))
    except Exception as e:
        logger.error(f"Pipeline evaluation failed: {e}")
        return _error(500, f"Failed to evaluate pipeline: {str(e)}", "PIPELINE_ERROR")


@app.get("/metrics", response_model=MetricsResponse)
async def get_metrics() -> MetricsResponse:
    """Aggregate timing and memory figures for evaluated pipelines"""
    return MetricsResponse(**get_performance_summary())


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    checks = {"settings_loaded": True}
    for backend in Backend:
        checks[f"{backend.value}_backend"] = LazyPipeline(backend).source(0, 2).to_list() == [0, 1]
    status = "healthy" if all(checks.values()) else "unhealthy"
    return HealthCheckResponse(status=status, settings=settings, checks=checks)
