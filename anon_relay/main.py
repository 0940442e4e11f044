"""FastAPI entry point for the relay webhook."""
import hmac
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from anon_relay.config import SECRET_TOKEN_HEADER, Settings, load_settings
from anon_relay.logging_config import setup_logging
from anon_relay.state import AppState, get_state

logger = logging.getLogger(__name__)


def _secret_matches(provided: Optional[str], expected: str) -> bool:
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def create_app(settings: Optional[Settings] = None, sender=None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Service settings.  When omitted they are loaded from the
            environment and logging is configured from them (this is the
            path taken by ``uvicorn --factory anon_relay.main:create_app``).
        sender: Outbound Bot API wrapper.  When omitted a TelegramSender is
            created and started during startup.
    """
    if settings is None:
        settings = load_settings()
        setup_logging(settings.log_level, settings.log_file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup logic; a corrupt snapshot aborts startup here.
        app.state.relay = await AppState.create(settings, sender=sender)
        logger.info("Relay bot started")
        yield
        # Shutdown logic, after uvicorn has drained in-flight requests.
        await app.state.relay.close()
        logger.info("Relay bot stopped")

    app = FastAPI(lifespan=lifespan)

    @app.post("/update")
    async def update(request: Request):
        """Webhook endpoint for Telegram updates.

        Endpoint: POST /update
        """
        relay = get_state(request.app)
        if relay is None:
            raise HTTPException(status_code=503, detail="Relay bot not started")

        expected = relay.settings.secret_token
        if expected and not _secret_matches(request.headers.get(SECRET_TOKEN_HEADER), expected):
            logger.error("Incorrect request token")
            raise HTTPException(status_code=400, detail="Invalid secret token")

        try:
            update_data = await request.json()
        except ValueError:
            logger.info("Failed to parse request body. Skipping")
            return {"ok": True}

        try:
            await relay.handler.handle_webhook(update_data)
        except Exception as e:
            logger.error(f"Error during update handling: {e}")
            import traceback
            logger.error(traceback.format_exc())
            raise HTTPException(status_code=500, detail="Failed to process update")

        return {"ok": True}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthz():
        """Basic health check."""
        return {"status": "ok"}

    return app


if __name__ == "__main__":
    from anon_relay.cli import main

    main()
