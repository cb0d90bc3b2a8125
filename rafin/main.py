from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from rafin.internal.env_settings import Settings
from rafin.internal.lookup import create_lookup_service
from rafin.routers.api import book_lookup
from rafin.util.connection import create_client_session
from rafin.util.log import logger, setup_logging

settings = Settings()

setup_logging(
    log_level=settings.app.log_level,
    log_format=settings.app.log_format,
    log_file=settings.app.log_file,
    config_dir=settings.app.config_dir,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.lookup_service = create_lookup_service(settings)
    async with create_client_session(settings) as client_session:
        app.state.client_session = client_session
        logger.info(
            "Book lookup service started",
            sources=[s.value for s in app.state.lookup_service.available_sources],
            cache_ttl=settings.lookup.cache_ttl,
            request_timeout=settings.lookup.request_timeout,
        )
        yield
    logger.info(
        "Book lookup service stopped",
        **app.state.lookup_service.cache_stats(),
    )


app = FastAPI(
    title="Rafin book lookup",
    debug=settings.app.debug,
    version=settings.app.version,
    lifespan=lifespan,
    openapi_url="/openapi.json" if settings.app.openapi_enabled else None,
    root_path=settings.app.base_url.rstrip("/"),
)

api_router = APIRouter(prefix="/api")
api_router.include_router(book_lookup.router)
app.include_router(api_router)
