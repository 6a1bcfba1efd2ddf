"""Best-effort deletion of transient dialog messages.

delete_messages never raises: a failed deletion must not interrupt the dialog.
"""
from __future__ import annotations

import logging
import time
from typing import Callable

from apps.predictbot.clients.telegram import ChatTransport

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_SECONDS = 1.0

_RATE_LIMIT_MARKERS = ("Too Many Requests", "retry after")
_NOT_FOUND_MARKERS = ("message to delete not found", "message not found", "MESSAGE_ID_INVALID")
_TOO_OLD_MARKERS = ("message can't be deleted", "message is too old", "MESSAGE_DELETE_FORBIDDEN")


def _has_marker(err: str | None, markers: tuple[str, ...]) -> bool:
    if not err:
        return False
    return any(m in err for m in markers)


def is_rate_limit_error(err: str | None) -> bool:
    return _has_marker(err, _RATE_LIMIT_MARKERS)


def is_message_not_found_error(err: str | None) -> bool:
    return _has_marker(err, _NOT_FOUND_MARKERS)


def is_message_too_old_error(err: str | None) -> bool:
    return _has_marker(err, _TOO_OLD_MARKERS)


def _attempt(transport: ChatTransport, chat_id: int, message_id: int) -> str | None:
    try:
        ok, err = transport.delete_message(chat_id, message_id)
    except Exception as e:
        return f"transport_error: {str(e)[:200]}"
    if ok:
        return None
    return err or "delete_failed"


def _delete_one(
    transport: ChatTransport,
    chat_id: int,
    message_id: int,
    backoff_seconds: float,
    sleep: Callable[[float], None],
) -> bool:
    err = _attempt(transport, chat_id, message_id)
    if err is None:
        logger.debug("message deleted chat_id=%s message_id=%s", chat_id, message_id)
        return True

    if is_rate_limit_error(err):
        logger.info(
            "rate limit hit, retrying after %ss chat_id=%s message_id=%s",
            backoff_seconds, chat_id, message_id,
        )
        sleep(backoff_seconds)
        retry_err = _attempt(transport, chat_id, message_id)
        if retry_err is None:
            logger.info("message deleted after retry chat_id=%s message_id=%s", chat_id, message_id)
            return True
        logger.warning(
            "message deletion failed after retry chat_id=%s message_id=%s err=%s",
            chat_id, message_id, retry_err,
        )
        return False

    if is_message_not_found_error(err):
        logger.info("message already gone chat_id=%s message_id=%s", chat_id, message_id)
        return False

    if is_message_too_old_error(err):
        logger.info("message too old to delete chat_id=%s message_id=%s", chat_id, message_id)
        return False

    logger.warning("message deletion failed chat_id=%s message_id=%s err=%s", chat_id, message_id, err)
    return False


def delete_messages(
    transport: ChatTransport,
    chat_id: int,
    *message_ids: int,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Delete message_ids in order; returns how many were actually deleted."""
    deleted = 0
    for message_id in message_ids:
        if not message_id or message_id <= 0:
            continue
        try:
            if _delete_one(transport, chat_id, message_id, backoff_seconds, sleep):
                deleted += 1
        except Exception:
            logger.exception("message cleanup error chat_id=%s message_id=%s", chat_id, message_id)
    return deleted
