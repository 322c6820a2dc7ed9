from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager
import uuid

from logdash.core.config import settings
from logdash.core.exceptions import AppException
from logdash.core.logging import logger
from logdash.api.api import api_router
from logdash.services.logs.bridge import session_registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.app_name} {settings.app_version}")

    yield

    # Shutdown
    logger.info(f"Shutting down with {session_registry.count()} active log sessions")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response

    # Errors escaping HTTP routes are reported as plain text
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        logger.warning(
            f"{request.method} {request.url.path} failed with {exc.code}: {exc.message}"
        )
        return PlainTextResponse(
            content=exc.message,
            status_code=exc.status_code,
        )

    app.include_router(api_router)

    return app


app = create_app()


def run():
    """Console entry point: serve the dashboard with uvicorn."""
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None
    )


if __name__ == "__main__":
    run()
