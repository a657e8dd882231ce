"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from buildhook.config import Settings
from buildhook.content.hasher import ContentHasher
from buildhook.db.repository import Repository
from buildhook.dispatch.config_store import ConfigStore
from buildhook.dispatch.dispatcher import WebhookDispatcher
from buildhook.events.handler import router as events_router
from buildhook.events.observer import ChangeObserver
from buildhook.pipeline.engine import BuildPipeline
from buildhook.status.routes import router as status_router
from buildhook.status.service import BuildStatusService

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None, *, http_client: httpx.AsyncClient | None = None
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or Settings()

        logging.basicConfig(
            level=getattr(logging, app_settings.log_level.upper()),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        # httpx logs every request URL at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)

        repo = Repository(app_settings.database_url)
        await repo.init_db()

        hasher = ContentHasher(repo, app_settings.content_types)
        config_store = ConfigStore(repo)
        dispatcher = WebhookDispatcher(
            app_settings.site_url,
            github_api_base=app_settings.github_api_base,
            timeout=app_settings.request_timeout,
            client=http_client,
        )
        pipeline = BuildPipeline(repo, hasher, dispatcher, config_store)
        observer = ChangeObserver(pipeline.handle_event)
        await observer.start()

        app.state.settings = app_settings
        app.state.repo = repo
        app.state.config_store = config_store
        app.state.observer = observer
        app.state.status_service = BuildStatusService(repo, hasher, dispatcher, config_store)

        logger.info("Build trigger service started for %s", app_settings.site_url)
        yield

        # Cleanup
        await observer.stop(timeout=app_settings.request_timeout)
        await dispatcher.close()
        await repo.close()
        logger.info("Build trigger service stopped")

    app = FastAPI(title="Headless Static Build Trigger", lifespan=lifespan)
    app.include_router(events_router)
    app.include_router(status_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "buildhook.main:app",
        host=settings.host,
        port=settings.port,
    )
