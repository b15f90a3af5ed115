from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv, find_dotenv
from pathlib import Path

from . import config
from .logging_config import setup_logging, get_logger
from .middleware.logging_middleware import LoggingMiddleware
from .routers import health as health_router
from .routers import whatsapp as whatsapp_router
from .routers import jobs as jobs_router

logger = get_logger(__name__)


def _load_env() -> None:
    # Repo-root .env first, then backend/.env; neither overrides the real environment
    repo_root_env = Path(__file__).resolve().parents[2] / ".env"
    backend_env = Path(__file__).resolve().parents[1] / ".env"
    if repo_root_env.exists():
        load_dotenv(dotenv_path=repo_root_env, override=False)
    if backend_env.exists():
        load_dotenv(dotenv_path=backend_env, override=False)
    if not repo_root_env.exists() and not backend_env.exists():
        load_dotenv(find_dotenv(usecwd=False), override=False)


def create_app() -> FastAPI:
    _load_env()
    setup_logging(config.log_level())

    app = FastAPI(title="Inspector Assistant", version="1.0.0")
    app.add_middleware(LoggingMiddleware)

    # Routers
    app.include_router(health_router.router)
    app.include_router(whatsapp_router.router)
    app.include_router(jobs_router.router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)

        # Only return detailed errors in development
        if config.is_production():
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"}
            )
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "type": type(exc).__name__}
        )

    return app


app = create_app()
