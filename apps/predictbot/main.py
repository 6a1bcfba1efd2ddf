"""Точка входа FastAPI."""
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.predictbot.clients.telegram import telegram_set_webhook
from apps.predictbot.config import Settings, get_settings
from apps.predictbot.database import init_schema
from apps.predictbot.deps import get_app_session_factory
from apps.predictbot.middleware.trace_id import HEADER, TraceIdMiddleware
from apps.predictbot.routers import health, telegram

logger = logging.getLogger(__name__)


def register_webhook(s: Settings) -> bool:
    if not s.telegram_webhook_url or not s.telegram_bot_token:
        return False
    if not s.telegram_webhook_secret:
        logger.warning("telegram_webhook_secret is empty: webhook not registered")
        return False
    url = f"{s.telegram_webhook_url.rstrip('/')}/v1/telegram/webhook/{s.telegram_webhook_secret}"
    ok, err = telegram_set_webhook(s.telegram_bot_token, url, s.telegram_webhook_secret)
    if not ok:
        logger.error("telegram setWebhook failed: %s", err)
        return False
    logger.info("telegram webhook registered base_url=%s", s.telegram_webhook_url)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    logging.basicConfig(
        level=getattr(logging, s.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if s.auto_create_schema:
        init_schema(get_app_session_factory().kw["bind"])
        logger.info("schema ensured")
    if not s.telegram_webhook_secret:
        logger.warning("telegram_webhook_secret is empty: webhook will reject every update")
    register_webhook(s)
    yield
    # shutdown


app = FastAPI(
    title="Predictbot",
    description="Prediction-market bot: event creation dialog",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(TraceIdMiddleware)

app.include_router(health.router, tags=["System"])
app.include_router(telegram.router, prefix="/v1/telegram", tags=["Telegram"])


def _error_payload(trace_id: str, error: str, code: str, message: str) -> dict:
    return {"error": error, "code": code, "message": message, "trace_id": trace_id}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    trace_id = getattr(request.state, "trace_id", None) or str(uuid.uuid4())[:16]
    detail = exc.detail if isinstance(exc.detail, str) else "Request error"
    resp = JSONResponse(
        content=_error_payload(trace_id, "http_error", f"http_{exc.status_code}", detail),
        status_code=exc.status_code,
    )
    resp.headers[HEADER] = trace_id
    return resp


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    trace_id = getattr(request.state, "trace_id", None) or str(uuid.uuid4())[:16]
    logger.exception("Unhandled exception trace_id=%s path=%s", trace_id, request.url.path)
    resp = JSONResponse(
        content=_error_payload(trace_id, "internal_error", "internal_error", "Internal server error"),
        status_code=500,
    )
    resp.headers[HEADER] = trace_id
    return resp
