"""Main FastAPI application for the shift push notification service."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import init_db, close_db
from .errors import PushError
from .routers import push_notifications_router
from .services.providers import get_push_provider, reset_push_provider

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting shift push notification service")

    await init_db()
    logger.info("Database initialized")

    # Build the provider once so configuration problems are logged at startup
    provider = get_push_provider()
    logger.info(f"Push provider: {provider.name} (configured={provider.configured})")

    yield

    await reset_push_provider()
    await close_db()
    logger.info("Shutdown complete")


async def push_error_handler(request: Request, exc: PushError):
    """Return validation failures as 400 with a machine-readable reason."""
    logger.info(f"Rejected {request.method} {request.url.path}: {exc.reason}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.reason, "detail": exc.message},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="ShiftPush",
        description="Device registration and push notification delivery for shift workers",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PushError, push_error_handler)

    app.include_router(push_notifications_router)

    @app.get("/health")
    async def health_check():
        provider = get_push_provider()
        return {
            "status": "healthy",
            "push_provider": provider.name,
            "push_configured": provider.configured,
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
