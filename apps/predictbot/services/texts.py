"""Dialog texts and the localizer used to render them."""
from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

EVENT_CREATION_TITLE = "event_creation.title"
ASK_QUESTION = "event_creation.ask_question"
SELECT_TYPE = "event_creation.select_type"
ASK_OPTIONS = "event_creation.ask_options"
TYPE_BINARY_SELECTED = "event_creation.type_binary_selected"
TYPE_MULTI_OPTION_SELECTED = "event_creation.type_multi_option_selected"
TYPE_PROBABILITY_SELECTED = "event_creation.type_probability_selected"
DEADLINE_PROMPT = "event_creation.deadline_prompt"
CANCELLED = "event_creation.cancelled"
ERROR_GENERIC = "event_creation.error_generic"

ERROR_EMPTY_QUESTION = "event_creation.error.empty_question"
ERROR_QUESTION_TOO_LONG = "event_creation.error.question_too_long"
ERROR_USE_BUTTONS = "event_creation.error.use_buttons"
ERROR_EMPTY_OPTIONS = "event_creation.error.empty_options"
ERROR_OPTIONS_COUNT = "event_creation.error.options_count"
ERROR_OPTIONS_DUPLICATE = "event_creation.error.options_duplicate"
ERROR_OPTION_TOO_LONG = "event_creation.error.option_too_long"
ERROR_DEADLINE_FORMAT = "event_creation.error.deadline_format"
ERROR_DEADLINE_PAST = "event_creation.error.deadline_past"

SESSION_EXPIRED_SHORT = "session.expired_short"
SESSION_EXPIRED_LONG = "session.expired_long"
NO_ACTIVE_SESSION = "session.no_active"
SESSION_CONFLICT = "session.conflict"
SESSION_CONFLICT_CONTINUE = "session.conflict_continue"
SESSION_CONFLICT_RESTART = "session.conflict_restart"
SESSION_CONTINUED = "session.continued"
NOT_ALLOWED = "session.not_allowed"
NO_GROUP_CONFIGURED = "session.no_group"

EVENT_TYPE_BINARY_BUTTON = "event_type.binary_button"
EVENT_TYPE_MULTI_OPTION_BUTTON = "event_type.multi_option_button"
EVENT_TYPE_PROBABILITY_BUTTON = "event_type.probability_button"
EVENT_TYPE_BINARY_LABEL = "event_type.binary_label"
EVENT_TYPE_MULTI_OPTION_LABEL = "event_type.multi_option_label"
EVENT_TYPE_PROBABILITY_LABEL = "event_type.probability_label"

OPTION_YES = "option.yes"
OPTION_NO = "option.no"
OPTION_PROBABILITY_0_25 = "option.probability_0_25"
OPTION_PROBABILITY_25_50 = "option.probability_25_50"
OPTION_PROBABILITY_50_75 = "option.probability_50_75"
OPTION_PROBABILITY_75_100 = "option.probability_75_100"

DEADLINE_PRESET_1D = "deadline_preset.1d"
DEADLINE_PRESET_3D = "deadline_preset.3d"
DEADLINE_PRESET_7D = "deadline_preset.7d"
DEADLINE_PRESET_14D = "deadline_preset.14d"
DEADLINE_PRESET_30D = "deadline_preset.30d"
DEADLINE_PRESET_90D = "deadline_preset.90d"
DEADLINE_PRESET_180D = "deadline_preset.180d"
DEADLINE_PRESET_365D = "deadline_preset.365d"

CONFIRM_YES = "confirm.yes"
CONFIRM_NO = "confirm.no"

SUMMARY_TITLE = "summary.title"
SUMMARY_QUESTION = "summary.question"
SUMMARY_TYPE = "summary.type"
SUMMARY_OPTIONS = "summary.options"
SUMMARY_OPTION_ITEM = "summary.option_item"
SUMMARY_DEADLINE = "summary.deadline"
FINAL_SUMMARY_TITLE = "summary.final_title"
FINAL_SUMMARY_ID = "summary.final_id"

DEFAULT_MESSAGES: dict[str, str] = {
    EVENT_CREATION_TITLE: "📝 New prediction event",
    ASK_QUESTION: "Send the question for the event.",
    SELECT_TYPE: "Choose the event type:",
    ASK_OPTIONS: "Send the answer options, one per line (2 to 6).",
    TYPE_BINARY_SELECTED: "Type: yes/no.",
    TYPE_MULTI_OPTION_SELECTED: "Type: multiple options.",
    TYPE_PROBABILITY_SELECTED: "Type: probability ranges.",
    DEADLINE_PROMPT: "Send the voting deadline as DD.MM.YYYY HH:MM, for example <code>{}</code>, or pick a preset.",
    CANCELLED: "Event creation cancelled.",
    ERROR_GENERIC: "Could not create the event. Please try again later.",
    ERROR_EMPTY_QUESTION: "The question cannot be empty. Send the question text.",
    ERROR_QUESTION_TOO_LONG: "The question is too long (max {} characters).",
    ERROR_USE_BUTTONS: "Please use the buttons above.",
    ERROR_EMPTY_OPTIONS: "Options cannot be empty. Send them one per line.",
    ERROR_OPTIONS_COUNT: "Send between 2 and 6 options, one per line.",
    ERROR_OPTIONS_DUPLICATE: "Options must be different from each other.",
    ERROR_OPTION_TOO_LONG: "Each option must be at most {} characters.",
    ERROR_DEADLINE_FORMAT: "Could not read the date. Use DD.MM.YYYY HH:MM, for example <code>{}</code>.",
    ERROR_DEADLINE_PAST: "The deadline must be in the future.",
    SESSION_EXPIRED_SHORT: "Session expired",
    SESSION_EXPIRED_LONG: "Your event creation session expired after inactivity. Send /create_event to start again.",
    NO_ACTIVE_SESSION: "There is no active event creation. Send /create_event to start.",
    SESSION_CONFLICT: "You already have an event in progress. Continue it or start over?",
    SESSION_CONFLICT_CONTINUE: "Continue",
    SESSION_CONFLICT_RESTART: "Start over",
    SESSION_CONTINUED: "Continuing where you left off.",
    NOT_ALLOWED: "Only administrators can create events.",
    NO_GROUP_CONFIGURED: "No group is configured for new events.",
    EVENT_TYPE_BINARY_BUTTON: "Yes / No",
    EVENT_TYPE_MULTI_OPTION_BUTTON: "Multiple options",
    EVENT_TYPE_PROBABILITY_BUTTON: "Probability",
    EVENT_TYPE_BINARY_LABEL: "Yes/No",
    EVENT_TYPE_MULTI_OPTION_LABEL: "Multiple options",
    EVENT_TYPE_PROBABILITY_LABEL: "Probability",
    OPTION_YES: "Yes",
    OPTION_NO: "No",
    OPTION_PROBABILITY_0_25: "0-25%",
    OPTION_PROBABILITY_25_50: "25-50%",
    OPTION_PROBABILITY_50_75: "50-75%",
    OPTION_PROBABILITY_75_100: "75-100%",
    DEADLINE_PRESET_1D: "1 day",
    DEADLINE_PRESET_3D: "3 days",
    DEADLINE_PRESET_7D: "1 week",
    DEADLINE_PRESET_14D: "2 weeks",
    DEADLINE_PRESET_30D: "1 month",
    DEADLINE_PRESET_90D: "3 months",
    DEADLINE_PRESET_180D: "6 months",
    DEADLINE_PRESET_365D: "1 year",
    CONFIRM_YES: "✅ Create",
    CONFIRM_NO: "❌ Cancel",
    SUMMARY_TITLE: "Check the event:",
    SUMMARY_QUESTION: "❓ {}",
    SUMMARY_TYPE: "Type: {}",
    SUMMARY_OPTIONS: "Options:",
    SUMMARY_OPTION_ITEM: "{}. {}",
    SUMMARY_DEADLINE: "⏰ Deadline: {}",
    FINAL_SUMMARY_TITLE: "✅ Event created",
    FINAL_SUMMARY_ID: "ID: {}",
}


class Localizer(Protocol):
    def localize(self, key: str, *args: object) -> str: ...


class DefaultLocalizer:
    """Looks keys up in a message table; unknown keys render as the key itself."""

    def __init__(self, messages: dict[str, str] | None = None, locale: str = "en"):
        self.messages = dict(DEFAULT_MESSAGES)
        if messages:
            self.messages.update(messages)
        self.locale = locale

    def localize(self, key: str, *args: object) -> str:
        template = self.messages.get(key)
        if template is None:
            logger.warning("missing text key=%s locale=%s", key, self.locale)
            return key
        if not args:
            return template
        try:
            return template.format(*args)
        except (IndexError, KeyError, ValueError):
            logger.warning("bad text template key=%s locale=%s", key, self.locale)
            return template
