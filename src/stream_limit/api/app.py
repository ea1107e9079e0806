"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request, status

from stream_limit.api.admin import router as admin_router
from stream_limit.api.jellyfin_models import JellyfinWebhookPayload
from stream_limit.app_logging import configure_logging
from stream_limit.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            app.state.container.configuration_service.refresh()
        except Exception:
            logger.exception("Failed to load stream limit configuration")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/jellyfin/webhook")
    async def jellyfin_webhook(
        payload: JellyfinWebhookPayload,
        request: Request,
        background_tasks: BackgroundTasks,
        x_webhook_token: str | None = Header(default=None),
    ) -> dict[str, str]:
        """Accept Jellyfin notifications and enforce limits on playback start."""
        state_container: AppContainer = request.app.state.container
        expected_token = state_container.settings.webhook_token
        if expected_token and x_webhook_token != expected_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
        if not payload.is_playback_start:
            return {"status": "ignored"}
        background_tasks.add_task(
            state_container.dispatcher.on_playback_start, payload.to_event()
        )
        return {"status": "accepted"}

    return app
