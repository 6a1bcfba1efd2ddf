"""Routing of Telegram updates into the event creation dialog."""
from unittest.mock import MagicMock

import pytest

from apps.predictbot.config import Settings
from apps.predictbot.services import texts
from apps.predictbot.services.telegram_updates import process_telegram_update


@pytest.fixture
def settings():
    return Settings(_env_file=None, admin_user_ids="42, 43", default_group_id=-1001)


@pytest.fixture
def fsm():
    m = MagicMock()
    m.start.return_value = "ask_question"
    m.cancel.return_value = "cancelled"
    m.handle_message.return_value = "ask_event_type"
    m.handle_callback.return_value = "ask_deadline"
    return m


def _message(text, user_id=42, chat_type="private", message_id=10):
    return {
        "update_id": 1,
        "message": {
            "message_id": message_id,
            "from": {"id": user_id},
            "chat": {"id": user_id, "type": chat_type},
            "text": text,
        },
    }


def test_create_event_command_starts_dialog(fsm, settings):
    assert process_telegram_update(fsm, _message("/create_event"), settings) == {"status": "ask_question"}
    fsm.start.assert_called_once_with(42, 42, -1001)


def test_command_with_bot_suffix(fsm, settings):
    process_telegram_update(fsm, _message("/create_event@PredictBot"), settings)
    fsm.start.assert_called_once()


def test_cancel_command(fsm, settings):
    assert process_telegram_update(fsm, _message("/cancel"), settings) == {"status": "cancelled"}
    fsm.cancel.assert_called_once_with(42, 42)


def test_plain_text_goes_to_dialog(fsm, settings):
    result = process_telegram_update(fsm, _message("  Will it rain?  ", message_id=11), settings)
    assert result == {"status": "ask_event_type"}
    fsm.handle_message.assert_called_once_with(42, 42, 11, "Will it rain?")


def test_non_admin_command_is_refused(fsm, settings):
    result = process_telegram_update(fsm, _message("/create_event", user_id=5), settings)
    assert result["status"] == "blocked"
    assert result["reply"] == texts.NOT_ALLOWED
    fsm.start.assert_not_called()


def test_non_admin_text_is_ignored(fsm, settings):
    assert process_telegram_update(fsm, _message("hi", user_id=5), settings)["status"] == "ignored"
    fsm.handle_message.assert_not_called()


def test_group_chat_is_ignored(fsm, settings):
    result = process_telegram_update(fsm, _message("/create_event", chat_type="supergroup"), settings)
    assert result == {"status": "ignored", "reason": "chat_not_private"}


def test_missing_group_is_reported(fsm):
    s = Settings(_env_file=None, admin_user_ids="42", default_group_id=0)
    result = process_telegram_update(fsm, _message("/create_event"), s)
    assert result["reply"] == texts.NO_GROUP_CONFIGURED
    fsm.start.assert_not_called()


def test_callback_routed(fsm, settings):
    update = {
        "update_id": 2,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": 43},
            "message": {"message_id": 101, "chat": {"id": 43, "type": "private"}},
            "data": "event_type:binary",
        },
    }
    assert process_telegram_update(fsm, update, settings) == {"status": "ask_deadline"}
    fsm.handle_callback.assert_called_once_with(43, "cb-1", 43, 101, "event_type:binary")


def test_unsupported_updates(fsm, settings):
    assert process_telegram_update(fsm, {"update_id": 3, "edited_message": {}}, settings)["status"] == "ignored"
    assert process_telegram_update(fsm, ["not", "a", "dict"], settings)["status"] == "ignored"
    assert process_telegram_update(fsm, _message(""), settings)["status"] == "ignored"


def test_admin_ids_parsing():
    s = Settings(_env_file=None, admin_user_ids="1, 2;3, x, -4")
    assert s.admin_ids == {1, 2, 3, -4}


def test_bad_timezone_rejected():
    with pytest.raises(ValueError):
        Settings(_env_file=None, display_timezone="Mars/Olympus")
