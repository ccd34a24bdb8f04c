import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dms_migration.application import Services, build_services, configure_services, get_services
from dms_migration.core.errors import (
    ConfirmationRequired,
    ConflictError,
    NotFoundError,
    RepositoryError,
    ValidationFailed,
)
from dms_migration.core.settings import Settings, get_settings
from dms_migration.infrastructure import DmsSplitClient, SharePointClient
from dms_migration.routes import approvals, documents, moves

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _default_services(settings: Settings) -> Services:
    split_service = None
    repository = None
    if settings.dms_api_url:
        split_service = DmsSplitClient(
            settings.dms_api_url,
            token=settings.id_token or settings.access_token,
            timeout=settings.http_timeout,
        )
    base_url = settings.sharepoint_base_url
    if base_url:
        repository = SharePointClient(
            base_url,
            hub_site_url=f"{base_url}/sites/{settings.hub_site_name}",
            access_token=settings.access_token,
            related_hub_site_id=settings.related_hub_site_id or None,
            library=settings.document_library,
            select_properties=settings.search_select_properties,
            timeout=settings.http_timeout,
        )
    if split_service is None or repository is None:
        logger.info("repository adapters not fully configured, using the in-memory repository")
    return build_services(settings, split_service=split_service, repository=repository)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict(_: Request, exc: ConflictError) -> JSONResponse:
        content = {"detail": str(exc)}
        if isinstance(exc, ConfirmationRequired):
            content["confirmation_required"] = True
            content["warning"] = exc.warning
        return JSONResponse(status_code=409, content=content)

    @app.exception_handler(ValidationFailed)
    async def validation_failed(_: Request, exc: ValidationFailed) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(RepositoryError)
    async def repository_error(_: Request, exc: RepositoryError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.message})


def create_app(services: Services | None = None) -> FastAPI:
    settings = services.settings if services is not None else get_settings()
    configure_logging(settings.log_level)
    configure_services(services or _default_services(settings))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await get_services().registry.close_all()

    app = FastAPI(title="DMS Drawing Migration API", version="0.1.0", lifespan=lifespan)

    origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    app.include_router(documents.router, prefix="/api")
    app.include_router(approvals.router, prefix="/api")
    app.include_router(moves.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "DMS Drawing Migration API",
                "docs": "/docs",
                "open_documents": get_services().registry.names(),
            }
        )

    return app


app = create_app()


def main() -> None:
    uvicorn.run("dms_migration.app:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
