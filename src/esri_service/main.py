"""esri-import service.

Main FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from esri_service.config import Settings, settings
from esri_service.routers.esri import router as esri_router
from esri_service.session import ImportSession


def create_app(config: Settings | None = None) -> FastAPI:
    """Build the application around a fresh ImportSession."""
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{config.app_name} starting (id field: {config.source_id_field})")
        yield
        app.state.import_session.shutdown()
        logger.info(f"{config.app_name} shutting down...")

    app = FastAPI(
        title="esri-import",
        description="Import ArcGIS feature service data as editable map entities",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.import_session = ImportSession(config)
    app.include_router(esri_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "operational", "version": "0.1.0", "system": config.app_name}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
