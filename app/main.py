import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.composer import WRITE_ACCESS, add_package, router as composer_router
from app.data.authentication import initialize_authentication
from app.data.repository import get_base_path, load_repository_config
from app.domain.errors import RepositoryError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    """
    Translate repository errors into JSON error responses.
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(base_path: Optional[str] = None) -> FastAPI:
    """
    Build the FastAPI application with the Composer routes mounted under
    `base_path` (defaults to COMPOSER_REPO_BASE_PATH).
    """
    if base_path is None:
        base_path = get_base_path()

    app = FastAPI(
        title="Python Composer Repository",
        version="0.1.0",
        description="Minimal FastAPI-based implementation of a PHP Composer package repository.",
    )
    app.state.base_path = base_path
    app.add_exception_handler(RepositoryError, repository_error_handler)

    @app.on_event("startup")
    async def startup_event() -> None:
        """
        Load repository.json and authentication.json from the data directory.
        """
        config = load_repository_config()
        initialize_authentication()
        logger.info(
            f"Serving {config.repository_name} at '{base_path or '/'}' "
            f"with {config.storage_backend} storage"
        )

    @app.get("/health")
    async def health() -> dict:
        """
        Lightweight health check endpoint.
        """
        return {"status": "ok"}

    app.include_router(composer_router, prefix=base_path, tags=["composer"])
    if base_path:
        # Uploads also go to the bare base path, without a trailing slash.
        app.add_api_route(
            base_path,
            add_package,
            methods=["PUT"],
            dependencies=WRITE_ACCESS,
            tags=["composer"],
            include_in_schema=False,
        )
    return app


app = create_app()


if __name__ == "__main__":
    """
    Allow running `python -m app.main` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
