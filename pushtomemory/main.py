"""
PushToMemory - turn every git push into a moment of reflection.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from pushtomemory import __version__
from pushtomemory.config import get_settings
from pushtomemory.api.router import api_router
from pushtomemory.database import init_engine, dispose_engine
from pushtomemory.services.notifications import drain_pending_notifications
from pushtomemory.utils.redis_client import close_redis
from pushtomemory.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("pushtomemory")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("PushToMemory starting up (env=%s)", settings.app_env)

    if not settings.auth_jwt_secret:
        logger.warning(
            "AUTH_JWT_SECRET not set - falling back to APP_SECRET_KEY. "
            "Set a dedicated JWT secret for production."
        )
    if not settings.encryption_key:
        logger.warning(
            "ENCRYPTION_KEY not set - webhook secrets will be stored unencrypted. "
            "Generate a Fernet key for production."
        )
    if not settings.notification_service_url:
        logger.warning("NOTIFICATION_SERVICE_URL not set - push notifications disabled")

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    init_engine()

    yield

    logger.info("PushToMemory shutting down")
    await drain_pending_notifications(timeout=5.0)
    await close_redis()
    await dispose_engine()
    logger.info("PushToMemory shutdown complete")


def _allowed_origins(settings) -> list[str]:
    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.app_env == "development":
        origins.append("http://localhost:3000")
    return origins


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="PushToMemory",
        description="Reflect on what you learned with every push",
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID", "X-GitHub-Token",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
