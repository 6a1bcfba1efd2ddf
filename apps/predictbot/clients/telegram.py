"""Telegram Bot API client."""
from __future__ import annotations

from typing import Any, Protocol

import httpx


def _api_url(token: str, method: str) -> str:
    return f"https://api.telegram.org/bot{token}/{method}"


def _call(token: str, method: str, payload: dict, timeout: float = 20) -> tuple[Any, str | None]:
    try:
        r = httpx.post(_api_url(token, method), json=payload, timeout=timeout)
        data = r.json()
        if not data.get("ok"):
            return None, data.get("description") or f"http_{r.status_code}"
        return data.get("result"), None
    except Exception as e:
        return None, str(e)[:200]


def telegram_set_webhook(token: str, url: str, secret_token: str) -> tuple[bool, str | None]:
    payload = {
        "url": url,
        "secret_token": secret_token,
        "allowed_updates": ["message", "callback_query"],
    }
    result, err = _call(token, "setWebhook", payload)
    return bool(result) and err is None, err


def telegram_send_message(
    token: str,
    chat_id: str | int,
    text: str,
    reply_markup: dict | None = None,
    parse_mode: str | None = None,
) -> tuple[int | None, str | None]:
    payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
    if reply_markup:
        payload["reply_markup"] = reply_markup
    if parse_mode:
        payload["parse_mode"] = parse_mode
    result, err = _call(token, "sendMessage", payload)
    if err:
        return None, err
    message_id = (result or {}).get("message_id")
    if not message_id:
        return None, "missing message_id"
    return int(message_id), None


def telegram_delete_message(token: str, chat_id: str | int, message_id: int) -> tuple[bool, str | None]:
    result, err = _call(token, "deleteMessage", {"chat_id": chat_id, "message_id": message_id})
    if err:
        return False, err
    return bool(result), None


def telegram_answer_callback_query(
    token: str,
    callback_query_id: str,
    text: str | None = None,
) -> tuple[bool, str | None]:
    payload: dict[str, Any] = {"callback_query_id": callback_query_id}
    if text:
        payload["text"] = text
    result, err = _call(token, "answerCallbackQuery", payload, timeout=10)
    if err:
        return False, err
    return bool(result), None


def inline_keyboard(rows: list[list[tuple[str, str]]]) -> dict:
    """[[(text, callback_data), ...], ...] -> InlineKeyboardMarkup."""
    return {
        "inline_keyboard": [
            [{"text": text, "callback_data": data} for text, data in row]
            for row in rows
        ]
    }


class ChatTransport(Protocol):
    def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> tuple[int | None, str | None]: ...

    def delete_message(self, chat_id: int, message_id: int) -> tuple[bool, str | None]: ...

    def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> tuple[bool, str | None]: ...


class TelegramTransport:
    """ChatTransport bound to one bot token."""

    def __init__(self, token: str):
        self._token = token

    def send_message(self, chat_id, text, reply_markup=None, parse_mode=None):
        return telegram_send_message(self._token, chat_id, text, reply_markup=reply_markup, parse_mode=parse_mode)

    def delete_message(self, chat_id, message_id):
        return telegram_delete_message(self._token, chat_id, message_id)

    def answer_callback_query(self, callback_query_id, text=None):
        return telegram_answer_callback_query(self._token, callback_query_id, text=text)
