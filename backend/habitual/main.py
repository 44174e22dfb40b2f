"""Main FastAPI application for the Habitual backend."""
from fastapi import FastAPI, Request

from habitual.api.routes.activities import router as activities_router
from habitual.api.routes.jobs import router as jobs_router
from habitual.api.routes.programs import router as programs_router
from habitual.api.routes.tasks import router as tasks_router
from habitual.core.config import settings
from habitual.core.logging import configure_logging
from habitual.core.middleware import RequestIDMiddleware
from habitual.observability.client import init_opik, shutdown_opik
from habitual.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(tasks_router)
app.include_router(programs_router)
app.include_router(activities_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.on_event("shutdown")
async def shutdown_observability() -> None:
    """Flush pending traces before the process exits."""
    shutdown_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
