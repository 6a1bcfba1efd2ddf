"""HTTP clients: Telegram Bot API and Event Manager."""
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from apps.predictbot.clients import event_manager as em
from apps.predictbot.clients import telegram as tg
from apps.predictbot.services.context_codec import EventType


class _Resp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


def _event():
    return em.Event(
        group_id=-1001,
        question="Q?",
        event_type=EventType.BINARY,
        options=["Yes", "No"],
        deadline=datetime(2030, 1, 2, 9, 0, tzinfo=timezone.utc),
        created_by=7,
        created_at=datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc),
    )


def test_send_message_returns_message_id():
    with patch.object(tg.httpx, "post", return_value=_Resp(data={"ok": True, "result": {"message_id": 77}})) as post:
        message_id, err = tg.telegram_send_message("T", 5, "hi", reply_markup=tg.inline_keyboard([[("A", "a:1")]]), parse_mode="HTML")
    assert (message_id, err) == (77, None)
    url = post.call_args.args[0]
    payload = post.call_args.kwargs["json"]
    assert url == "https://api.telegram.org/botT/sendMessage"
    assert payload["parse_mode"] == "HTML"
    assert payload["reply_markup"] == {"inline_keyboard": [[{"text": "A", "callback_data": "a:1"}]]}


def test_delete_message_surfaces_api_description():
    resp = _Resp(status_code=400, data={"ok": False, "description": "Bad Request: message to delete not found"})
    with patch.object(tg.httpx, "post", return_value=resp):
        ok, err = tg.telegram_delete_message("T", 5, 9)
    assert ok is False
    assert "message to delete not found" in err


def test_transport_errors_become_error_strings():
    with patch.object(tg.httpx, "post", side_effect=httpx.ConnectError("down")):
        ok, err = tg.TelegramTransport("T").answer_callback_query("cb")
    assert ok is False
    assert "down" in err


def test_event_manager_posts_event(monkeypatch):
    captured = {}

    def fake_post(url, json=None, timeout=None):
        captured.update(url=url, json=json, timeout=timeout)
        return _Resp(data={"id": 31, "publication_ref": "https://t.me/c/1/5"})

    monkeypatch.setattr(em.httpx, "post", fake_post)
    event = _event()
    assert em.HttpEventManager("http://events.local/api", timeout=3).create_event(event) == 31
    assert event.id == 31
    assert event.publication_ref == "https://t.me/c/1/5"
    assert captured["timeout"] == 3
    assert captured["json"]["event_type"] == "binary"
    assert captured["json"]["deadline"] == "2030-01-02T09:00:00+00:00"
    assert captured["json"]["status"] == "active"


@pytest.mark.parametrize(
    "response,code",
    [
        (_Resp(status_code=500, text="oops"), "http_500"),
        (_Resp(data={"no_id": True}), "bad_response"),
        (_Resp(data=None, text="<html>"), "bad_response"),
    ],
)
def test_event_manager_errors(monkeypatch, response, code):
    monkeypatch.setattr(em.httpx, "post", lambda *a, **kw: response)
    with pytest.raises(em.EventManagerError) as exc:
        em.HttpEventManager("http://events.local/api").create_event(_event())
    assert exc.value.code == code


def test_event_manager_network_error(monkeypatch):
    def boom(*a, **kw):
        raise httpx.ConnectTimeout("timeout")

    monkeypatch.setattr(em.httpx, "post", boom)
    with pytest.raises(em.EventManagerError) as exc:
        em.HttpEventManager("http://events.local/api").create_event(_event())
    assert exc.value.code == "request_failed"


def test_event_manager_not_configured():
    with pytest.raises(em.EventManagerError) as exc:
        em.HttpEventManager("").create_event(_event())
    assert exc.value.code == "not_configured"
