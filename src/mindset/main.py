import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from mindset.api.chat import router as chat_router
from mindset.config import get_settings
from mindset.logging_config import configure_logging
from mindset.services.chat import get_chat_session
from mindset.telemetry import emit_app_startup_event

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Mindset Document Chat API")
app.include_router(chat_router)


@app.on_event("startup")
async def _startup() -> None:
    """Log the effective configuration once the service boots."""

    emit_app_startup_event()
    settings = get_settings()
    if not settings.api_key and not settings.uses_mock_llm:
        LOGGER.warning("TOGETHER_API_KEY is not set; questions will fail with a configuration error")


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Release the completion client's connection pool."""

    await get_chat_session().completion_client.aclose()


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Report whether the completion backend is configured."""
    settings = get_settings()
    if not settings.uses_mock_llm and not settings.api_key:
        raise HTTPException(status_code=503, detail="TOGETHER_API_KEY is not configured")
    return "ok"
