"""Telegram inbound updates -> event creation dialog."""
from __future__ import annotations

import logging

from apps.predictbot.config import Settings
from apps.predictbot.services import texts
from apps.predictbot.services.event_creation_fsm import EventCreationFSM

logger = logging.getLogger(__name__)

CMD_CREATE_EVENT = "/create_event"
CMD_CANCEL = "/cancel"


def _command(text: str) -> str | None:
    """'/create_event@SomeBot arg' -> '/create_event'."""
    if not text.startswith("/"):
        return None
    head = text.split(maxsplit=1)[0]
    return head.split("@", 1)[0].lower()


def _handle_message(fsm: EventCreationFSM, message: dict, settings: Settings) -> dict:
    chat = message.get("chat") or {}
    chat_id = chat.get("id")
    chat_type = (chat.get("type") or "").lower()
    if not chat_id:
        return {"status": "ignored", "reason": "no_chat_id"}
    if chat_type and chat_type != "private":
        return {"status": "ignored", "reason": "chat_not_private"}
    sender = message.get("from") or {}
    user_id = sender.get("id")
    if not user_id:
        return {"status": "ignored", "reason": "no_sender"}
    text = str(message.get("text") or "").strip()
    if not text:
        return {"status": "ignored", "reason": "no_text"}
    message_id = int(message.get("message_id") or 0)

    if user_id not in settings.admin_ids:
        if _command(text) in (CMD_CREATE_EVENT, CMD_CANCEL):
            logger.info("command from non-admin user_id=%s", user_id)
            return {"status": "blocked", "reason": "acl", "reply": texts.NOT_ALLOWED, "chat_id": chat_id}
        return {"status": "ignored", "reason": "not_admin"}

    command = _command(text)
    if command == CMD_CREATE_EVENT:
        if not settings.default_group_id:
            return {"status": "blocked", "reason": "no_group", "reply": texts.NO_GROUP_CONFIGURED, "chat_id": chat_id}
        return {"status": fsm.start(user_id, chat_id, settings.default_group_id)}
    if command == CMD_CANCEL:
        return {"status": fsm.cancel(user_id, chat_id)}
    return {"status": fsm.handle_message(user_id, chat_id, message_id, text)}


def _handle_callback(fsm: EventCreationFSM, callback: dict, settings: Settings) -> dict:
    callback_id = str(callback.get("id") or "")
    sender = callback.get("from") or {}
    user_id = sender.get("id")
    message = callback.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    if not callback_id or not user_id or not chat_id:
        return {"status": "ignored", "reason": "incomplete_callback"}
    if user_id not in settings.admin_ids:
        return {"status": "ignored", "reason": "not_admin"}
    return {
        "status": fsm.handle_callback(
            user_id,
            callback_id,
            chat_id,
            int(message.get("message_id") or 0),
            str(callback.get("data") or ""),
        )
    }


def process_telegram_update(fsm: EventCreationFSM, update: dict, settings: Settings) -> dict:
    """Route one Telegram update. Returns {"status": ...}; a "reply" key holds a text key to send back."""
    if not isinstance(update, dict):
        return {"status": "ignored", "reason": "bad_update"}
    callback = update.get("callback_query")
    if isinstance(callback, dict):
        return _handle_callback(fsm, callback, settings)
    message = update.get("message")
    if isinstance(message, dict):
        return _handle_message(fsm, message, settings)
    return {"status": "ignored"}
