from fastapi import Depends, FastAPI, Request
from contextlib import asynccontextmanager
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from booking_wizard.api import wizards
from booking_wizard.core.config import settings
from booking_wizard.core.redis import init_redis, close_redis, get_redis
from booking_wizard.core.metrics import request_count, request_duration, get_metrics_text
from booking_wizard.services.backend import init_backend, close_backend
from booking_wizard.services.sessions import WizardRegistry, get_registry
import time
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.time() - start_time
            endpoint = _endpoint_label(request)
            request_count.labels(method=request.method, endpoint=endpoint, status=500).inc()
            request_duration.labels(method=request.method, endpoint=endpoint).observe(duration)
            raise

        duration = time.time() - start_time
        endpoint = _endpoint_label(request)
        request_count.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        request_duration.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)
        return response


def _endpoint_label(request: Request) -> str:
    # Route template keeps wizard ids out of the label set.
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    await init_backend()

    try:
        await init_redis()
    except Exception as e:
        logger.error(f"Redis connection failed, running without distance cache: {e}")

    yield

    logger.info("Application shutting down...")
    get_registry().clear()
    await close_backend()
    await close_redis()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(wizards.router)


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check(registry: WizardRegistry = Depends(get_registry)):
    redis = get_redis()

    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "open_wizards": len(registry),
        "dependencies": {
            "redis": "connected" if redis is not None else "disconnected",
            "backend": settings.BACKEND_URL,
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    # The distance cache is optional, so readiness does not depend on Redis.
    return {
        "ready": True,
        "service": settings.API_TITLE
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
