"""Telegram webhook endpoint."""
from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from apps.predictbot.config import Settings, get_settings
from apps.predictbot.deps import get_fsm
from apps.predictbot.services.event_creation_fsm import EventCreationFSM
from apps.predictbot.services.telegram_updates import process_telegram_update

router = APIRouter()
logger = logging.getLogger(__name__)


def _check_secret(request: Request, secret: str, settings: Settings) -> bool:
    expected = settings.telegram_webhook_secret
    if not expected or not hmac.compare_digest(expected.encode(), secret.encode()):
        return False
    header_secret = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
    if header_secret and not hmac.compare_digest(header_secret.encode(), expected.encode()):
        return False
    return True


def _forbidden(request: Request) -> JSONResponse:
    trace_id = getattr(request.state, "trace_id", None) or ""
    return JSONResponse(
        {"error": "forbidden", "code": "forbidden", "message": "forbidden", "trace_id": trace_id},
        status_code=403,
    )


@router.post("/webhook/{secret}")
def telegram_webhook(
    secret: str,
    update: dict,
    request: Request,
    settings: Settings = Depends(get_settings),
    fsm: EventCreationFSM = Depends(get_fsm),
):
    # Sync handler: each update runs in its own threadpool thread, so cleanup backoff only blocks this flow.
    if not _check_secret(request, secret, settings):
        logger.warning("telegram webhook rejected: bad secret")
        return _forbidden(request)
    result = process_telegram_update(fsm, update, settings)
    if result.get("reply") and result.get("chat_id"):
        fsm.transport.send_message(result["chat_id"], fsm.localizer.localize(result["reply"]))
    logger.info("telegram update update_id=%s status=%s", update.get("update_id"), result.get("status"))
    return JSONResponse({"ok": True, "status": result.get("status")})
