"""Event creation dialog: ask_question -> ask_event_type -> [ask_options] -> ask_deadline -> confirm."""
from __future__ import annotations

import calendar
import logging
import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable

from apps.predictbot.clients.event_manager import Event, EventManager
from apps.predictbot.clients.telegram import ChatTransport, inline_keyboard
from apps.predictbot.models.dialog_session import DialogState
from apps.predictbot.services import texts
from apps.predictbot.services.context_codec import (
    DecodeError,
    EventCreationContext,
    EventType,
    from_map,
    to_map,
)
from apps.predictbot.services.event_summary import (
    DEADLINE_FORMAT,
    build_event_summary,
    build_final_event_summary,
)
from apps.predictbot.services.message_cleanup import DEFAULT_BACKOFF_SECONDS, delete_messages
from apps.predictbot.services.session_store import SessionExpired, SessionNotFound, SessionStore
from apps.predictbot.services.texts import Localizer

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_FAILED = "failed"
STATUS_EXPIRED = "expired"
STATUS_NO_SESSION = "no_session"
STATUS_CONFLICT = "conflict"
STATUS_IGNORED = "ignored"

MAX_QUESTION_LENGTH = 255
MIN_OPTIONS = 2
MAX_OPTIONS = 6
MAX_OPTION_LENGTH = 100

# preset -> (days, months)
DEADLINE_PRESETS: dict[str, tuple[int, int]] = {
    "1d": (1, 0),
    "3d": (3, 0),
    "7d": (7, 0),
    "14d": (14, 0),
    "30d": (0, 1),
    "90d": (0, 3),
    "180d": (0, 6),
    "365d": (0, 12),
}
_PRESET_LABELS = {
    "1d": texts.DEADLINE_PRESET_1D,
    "3d": texts.DEADLINE_PRESET_3D,
    "7d": texts.DEADLINE_PRESET_7D,
    "14d": texts.DEADLINE_PRESET_14D,
    "30d": texts.DEADLINE_PRESET_30D,
    "90d": texts.DEADLINE_PRESET_90D,
    "180d": texts.DEADLINE_PRESET_180D,
    "365d": texts.DEADLINE_PRESET_365D,
}


class ValidationError(Exception):
    """User input rejected in the current state."""

    def __init__(self, key: str, *params: object, parse_mode: str | None = None):
        super().__init__(key)
        self.key = key
        self.params = params
        self.parse_mode = parse_mode


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_question(text: str) -> str:
    question = (text or "").strip()
    if not question:
        raise ValidationError(texts.ERROR_EMPTY_QUESTION)
    if len(question) > MAX_QUESTION_LENGTH:
        raise ValidationError(texts.ERROR_QUESTION_TOO_LONG, MAX_QUESTION_LENGTH)
    return question


def parse_options(text: str) -> list[str]:
    if not (text or "").strip():
        raise ValidationError(texts.ERROR_EMPTY_OPTIONS)
    options = [line.strip() for line in text.split("\n") if line.strip()]
    if len(options) < MIN_OPTIONS or len(options) > MAX_OPTIONS:
        raise ValidationError(texts.ERROR_OPTIONS_COUNT)
    if any(len(opt) > MAX_OPTION_LENGTH for opt in options):
        raise ValidationError(texts.ERROR_OPTION_TOO_LONG, MAX_OPTION_LENGTH)
    if len({opt.casefold() for opt in options}) != len(options):
        raise ValidationError(texts.ERROR_OPTIONS_DUPLICATE)
    return options


class EventCreationFSM:
    def __init__(
        self,
        store: SessionStore,
        transport: ChatTransport,
        event_manager: EventManager,
        localizer: Localizer,
        tz: tzinfo,
        now: Callable[[], datetime] | None = None,
        delete_backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.transport = transport
        self.event_manager = event_manager
        self.localizer = localizer
        self.tz = tz
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.delete_backoff_seconds = delete_backoff_seconds
        self._sleep = sleep

    # -- entry points --------------------------------------------------

    def start(self, principal_id: int, chat_id: int, group_id: int) -> str:
        if self.store.exists(principal_id):
            self._send(
                chat_id,
                self._t(texts.SESSION_CONFLICT),
                inline_keyboard([
                    [(self._t(texts.SESSION_CONFLICT_CONTINUE), "session_conflict:continue")],
                    [(self._t(texts.SESSION_CONFLICT_RESTART), "session_conflict:restart")],
                ]),
            )
            logger.info("session conflict principal_id=%s", principal_id)
            return STATUS_CONFLICT
        ctx = EventCreationContext(chat_id=chat_id, group_id=group_id)
        self._send_prompt(DialogState.ASK_QUESTION, ctx)
        self.store.set(principal_id, DialogState.ASK_QUESTION, to_map(ctx))
        logger.info("dialog started principal_id=%s group_id=%s", principal_id, group_id)
        return DialogState.ASK_QUESTION.value

    def has_session(self, principal_id: int) -> bool:
        return self.store.exists(principal_id)

    def handle_message(self, principal_id: int, chat_id: int, message_id: int, text: str) -> str:
        loaded = self._load(principal_id, chat_id)
        if isinstance(loaded, str):
            return loaded
        state, ctx = loaded
        handler = _MESSAGE_HANDLERS[state]
        try:
            return handler(self, principal_id, chat_id, message_id, text or "", ctx)
        except ValidationError as e:
            return self._reject(principal_id, state, ctx, message_id, e)

    def handle_callback(
        self,
        principal_id: int,
        callback_id: str,
        chat_id: int,
        message_id: int,
        data: str,
    ) -> str:
        loaded = self._load(principal_id, chat_id, callback_id=callback_id)
        if isinstance(loaded, str):
            return loaded
        state, ctx = loaded
        self._answer(callback_id)

        prefix, _, value = (data or "").partition(":")
        if prefix == "session_conflict":
            return self._on_conflict(principal_id, state, ctx, message_id, value)
        route = _CALLBACK_ROUTES.get(prefix)
        if route is None or route[0] is not state:
            logger.warning(
                "unexpected callback principal_id=%s state=%s data=%s",
                principal_id, state.value, (data or "")[:64],
            )
            return STATUS_IGNORED
        try:
            return route[1](self, principal_id, message_id, value, ctx)
        except ValidationError as e:
            return self._reject(principal_id, state, ctx, 0, e)

    def cancel(self, principal_id: int, chat_id: int) -> str:
        loaded = self._load(principal_id, chat_id, report_missing=True)
        if isinstance(loaded, str):
            return loaded
        _state, ctx = loaded
        self._cleanup(ctx.chat_id or chat_id, ctx.last_bot_message_id, ctx.last_error_message_id, ctx.confirmation_message_id)
        self.store.delete(principal_id)
        self._send(chat_id, self._t(texts.CANCELLED))
        logger.info("dialog cancelled principal_id=%s", principal_id)
        return STATUS_CANCELLED

    # -- message handlers ----------------------------------------------

    def _on_question_text(self, principal_id, chat_id, message_id, text, ctx):
        ctx.question = parse_question(text)
        return self._advance(principal_id, DialogState.ASK_QUESTION, DialogState.ASK_EVENT_TYPE, ctx, message_id)

    def _on_options_text(self, principal_id, chat_id, message_id, text, ctx):
        ctx.options = parse_options(text)
        return self._advance(principal_id, DialogState.ASK_OPTIONS, DialogState.ASK_DEADLINE, ctx, message_id)

    def _on_deadline_text(self, principal_id, chat_id, message_id, text, ctx):
        ctx.deadline = self.parse_deadline(text)
        return self._advance(principal_id, DialogState.ASK_DEADLINE, DialogState.CONFIRM, ctx, message_id)

    def _on_buttons_only_text(self, principal_id, chat_id, message_id, text, ctx):
        raise ValidationError(texts.ERROR_USE_BUTTONS)

    # -- callback handlers ---------------------------------------------

    def _on_event_type(self, principal_id, message_id, value, ctx):
        try:
            event_type = EventType(value)
        except ValueError:
            raise ValidationError(texts.ERROR_USE_BUTTONS) from None
        ctx.event_type = event_type
        if event_type is EventType.BINARY:
            ctx.options = [self._t(texts.OPTION_YES), self._t(texts.OPTION_NO)]
            next_state = DialogState.ASK_DEADLINE
        elif event_type is EventType.PROBABILITY:
            ctx.options = [
                self._t(texts.OPTION_PROBABILITY_0_25),
                self._t(texts.OPTION_PROBABILITY_25_50),
                self._t(texts.OPTION_PROBABILITY_50_75),
                self._t(texts.OPTION_PROBABILITY_75_100),
            ]
            next_state = DialogState.ASK_DEADLINE
        else:
            ctx.options = []
            next_state = DialogState.ASK_OPTIONS
        return self._advance(principal_id, DialogState.ASK_EVENT_TYPE, next_state, ctx, 0, message_id)

    def _on_deadline_preset(self, principal_id, message_id, value, ctx):
        if value not in DEADLINE_PRESETS:
            raise ValidationError(texts.ERROR_USE_BUTTONS)
        ctx.deadline = self.preset_deadline(value)
        return self._advance(principal_id, DialogState.ASK_DEADLINE, DialogState.CONFIRM, ctx, 0, message_id)

    def _on_confirm(self, principal_id, message_id, value, ctx):
        if value not in ("yes", "no"):
            raise ValidationError(texts.ERROR_USE_BUTTONS)
        chat_id = ctx.chat_id
        self._cleanup(chat_id, ctx.confirmation_message_id, message_id, ctx.last_error_message_id)

        if value == "no":
            self.store.delete(principal_id)
            self._send(chat_id, self._t(texts.CANCELLED))
            logger.info("event creation cancelled principal_id=%s", principal_id)
            return STATUS_CANCELLED

        if ctx.event_type is None or ctx.deadline is None or not ctx.question or len(ctx.options) < MIN_OPTIONS:
            logger.error("incomplete context at confirm principal_id=%s", principal_id)
            self.store.delete(principal_id)
            self._send(chat_id, self._t(texts.ERROR_GENERIC))
            return STATUS_FAILED

        event = Event(
            group_id=ctx.group_id,
            question=ctx.question,
            event_type=ctx.event_type,
            options=list(ctx.options),
            deadline=ctx.deadline,
            created_by=principal_id,
            created_at=self._now(),
        )
        try:
            event_id = self.event_manager.create_event(event)
        except Exception as e:
            logger.exception("event creation failed principal_id=%s: %s", principal_id, e)
            self.store.delete(principal_id)
            self._send(chat_id, self._t(texts.ERROR_GENERIC))
            return STATUS_FAILED

        summary = build_final_event_summary(event, event_id, self.localizer, self.tz, event.publication_ref)
        self._send(chat_id, summary)
        self.store.delete(principal_id)
        logger.info("event created principal_id=%s event_id=%s", principal_id, event_id)
        return STATUS_COMPLETED

    def _on_conflict(self, principal_id, state, ctx, message_id, value):
        chat_id = ctx.chat_id
        if value == "restart":
            self._cleanup(chat_id, message_id, ctx.last_bot_message_id, ctx.last_error_message_id, ctx.confirmation_message_id)
            self.store.delete(principal_id)
            return self.start(principal_id, chat_id, ctx.group_id)
        if value != "continue":
            return STATUS_IGNORED
        self._cleanup(chat_id, message_id, ctx.last_bot_message_id, ctx.last_error_message_id)
        ctx.last_error_message_id = 0
        self._send(chat_id, self._t(texts.SESSION_CONTINUED))
        self._send_prompt(state, ctx)
        self.store.set(principal_id, state, to_map(ctx))
        return state.value

    # -- deadlines -----------------------------------------------------

    def _local_now(self) -> datetime:
        return self._now().astimezone(self.tz)

    def example_deadline(self) -> str:
        day = self._local_now() + timedelta(days=7)
        return day.replace(hour=12, minute=0, second=0, microsecond=0).strftime(DEADLINE_FORMAT)

    def parse_deadline(self, text: str) -> datetime:
        try:
            local = datetime.strptime((text or "").strip(), DEADLINE_FORMAT)
        except ValueError:
            raise ValidationError(texts.ERROR_DEADLINE_FORMAT, self.example_deadline(), parse_mode="HTML") from None
        try:
            deadline = local.replace(tzinfo=self.tz).astimezone(timezone.utc)
        except (OverflowError, ValueError):
            raise ValidationError(texts.ERROR_DEADLINE_FORMAT, self.example_deadline(), parse_mode="HTML") from None
        if deadline <= self._now():
            raise ValidationError(texts.ERROR_DEADLINE_PAST)
        return deadline

    def preset_deadline(self, preset: str) -> datetime:
        days, months = DEADLINE_PRESETS[preset]
        local = self._local_now()
        if months:
            local = _add_months(local, months)
        else:
            local = local + timedelta(days=days)
        noon = datetime(local.year, local.month, local.day, 12, 0, tzinfo=self.tz)
        return noon.astimezone(timezone.utc)

    # -- prompts -------------------------------------------------------

    def _prompt_ask_question(self, ctx):
        text = f"{self._t(texts.EVENT_CREATION_TITLE)}\n\n{self._t(texts.ASK_QUESTION)}"
        return text, None, None

    def _prompt_ask_event_type(self, ctx):
        markup = inline_keyboard([
            [(self._t(texts.EVENT_TYPE_BINARY_BUTTON), f"event_type:{EventType.BINARY.value}")],
            [(self._t(texts.EVENT_TYPE_MULTI_OPTION_BUTTON), f"event_type:{EventType.MULTI_OPTION.value}")],
            [(self._t(texts.EVENT_TYPE_PROBABILITY_BUTTON), f"event_type:{EventType.PROBABILITY.value}")],
        ])
        return self._t(texts.SELECT_TYPE), markup, None

    def _prompt_ask_options(self, ctx):
        text = f"{self._t(texts.TYPE_MULTI_OPTION_SELECTED)}\n\n{self._t(texts.ASK_OPTIONS)}"
        return text, None, None

    def _prompt_ask_deadline(self, ctx):
        prompt = self._t(texts.DEADLINE_PROMPT, self.example_deadline())
        selected = {
            EventType.BINARY: texts.TYPE_BINARY_SELECTED,
            EventType.PROBABILITY: texts.TYPE_PROBABILITY_SELECTED,
        }.get(ctx.event_type)
        if selected:
            prompt = f"{self._t(selected)}\n\n{prompt}"
        markup = inline_keyboard([
            [(self._t(label), f"deadline_preset:{preset}")]
            for preset, label in _PRESET_LABELS.items()
        ])
        return prompt, markup, "HTML"

    def _prompt_confirm(self, ctx):
        markup = inline_keyboard([[
            (self._t(texts.CONFIRM_YES), "confirm:yes"),
            (self._t(texts.CONFIRM_NO), "confirm:no"),
        ]])
        return build_event_summary(ctx, self.localizer, self.tz), markup, None

    def _send_prompt(self, state: DialogState, ctx: EventCreationContext) -> int:
        text, markup, parse_mode = _PROMPTS[state](self, ctx)
        message_id = self._send(ctx.chat_id, text, markup, parse_mode)
        ctx.last_bot_message_id = message_id
        if state is DialogState.CONFIRM:
            ctx.confirmation_message_id = message_id
        return message_id

    # -- transitions ---------------------------------------------------

    def _advance(
        self,
        principal_id: int,
        old_state: DialogState,
        new_state: DialogState,
        ctx: EventCreationContext,
        input_message_id: int,
        *extra_delete: int,
    ) -> str:
        self._cleanup(ctx.chat_id, ctx.last_bot_message_id, *extra_delete, input_message_id, ctx.last_error_message_id)
        ctx.last_error_message_id = 0
        if input_message_id:
            ctx.last_user_message_id = input_message_id
        self._send_prompt(new_state, ctx)
        self.store.set(principal_id, new_state, to_map(ctx))
        logger.info(
            "state transition principal_id=%s old_state=%s new_state=%s",
            principal_id, old_state.value, new_state.value,
        )
        return new_state.value

    def _reject(
        self,
        principal_id: int,
        state: DialogState,
        ctx: EventCreationContext,
        input_message_id: int,
        err: ValidationError,
    ) -> str:
        self._cleanup(ctx.chat_id, ctx.last_error_message_id, input_message_id)
        ctx.last_error_message_id = self._send(
            ctx.chat_id, self._t(err.key, *err.params), parse_mode=err.parse_mode
        )
        self.store.set(principal_id, state, to_map(ctx))
        logger.info("input rejected principal_id=%s state=%s reason=%s", principal_id, state.value, err.key)
        return state.value

    # -- plumbing ------------------------------------------------------

    def _load(
        self,
        principal_id: int,
        chat_id: int,
        callback_id: str | None = None,
        report_missing: bool = False,
    ):
        """(state, ctx) of the live session, or a status string once the user has been told why not."""
        try:
            state, data = self.store.get(principal_id)
            ctx = from_map(data)
        except SessionNotFound:
            logger.debug("no active session principal_id=%s", principal_id)
            if callback_id:
                self._answer(callback_id, self._t(texts.NO_ACTIVE_SESSION))
            if report_missing:
                self._send(chat_id, self._t(texts.NO_ACTIVE_SESSION))
            return STATUS_NO_SESSION
        except SessionExpired:
            if callback_id:
                self._answer(callback_id, self._t(texts.SESSION_EXPIRED_SHORT))
            self._send(chat_id, self._t(texts.SESSION_EXPIRED_LONG))
            return STATUS_EXPIRED
        except DecodeError as e:
            logger.warning("corrupt session principal_id=%s key=%s err=%s", principal_id, e.key, e)
            self.store.delete(principal_id)
            if callback_id:
                self._answer(callback_id, self._t(texts.NO_ACTIVE_SESSION))
            self._send(chat_id, self._t(texts.NO_ACTIVE_SESSION))
            return STATUS_NO_SESSION
        if not ctx.chat_id:
            ctx.chat_id = chat_id
        return state, ctx

    def _t(self, key: str, *args: object) -> str:
        return self.localizer.localize(key, *args)

    def _send(self, chat_id: int, text: str, reply_markup: dict | None = None, parse_mode: str | None = None) -> int:
        message_id, err = self.transport.send_message(chat_id, text, reply_markup=reply_markup, parse_mode=parse_mode)
        if err or not message_id:
            logger.error("failed to send message chat_id=%s err=%s", chat_id, err)
            return 0
        return message_id

    def _answer(self, callback_id: str, text: str | None = None) -> None:
        ok, err = self.transport.answer_callback_query(callback_id, text=text)
        if not ok:
            logger.debug("answer callback failed callback_id=%s err=%s", callback_id, err)

    def _cleanup(self, chat_id: int, *message_ids: int) -> None:
        ids = list(dict.fromkeys(m for m in message_ids if m))
        if ids:
            delete_messages(
                self.transport,
                chat_id,
                *ids,
                backoff_seconds=self.delete_backoff_seconds,
                sleep=self._sleep,
            )


_MESSAGE_HANDLERS: dict[DialogState, Callable[..., str]] = {
    DialogState.ASK_QUESTION: EventCreationFSM._on_question_text,
    DialogState.ASK_EVENT_TYPE: EventCreationFSM._on_buttons_only_text,
    DialogState.ASK_OPTIONS: EventCreationFSM._on_options_text,
    DialogState.ASK_DEADLINE: EventCreationFSM._on_deadline_text,
    DialogState.CONFIRM: EventCreationFSM._on_buttons_only_text,
}

_PROMPTS: dict[DialogState, Callable[..., tuple[str, dict | None, str | None]]] = {
    DialogState.ASK_QUESTION: EventCreationFSM._prompt_ask_question,
    DialogState.ASK_EVENT_TYPE: EventCreationFSM._prompt_ask_event_type,
    DialogState.ASK_OPTIONS: EventCreationFSM._prompt_ask_options,
    DialogState.ASK_DEADLINE: EventCreationFSM._prompt_ask_deadline,
    DialogState.CONFIRM: EventCreationFSM._prompt_confirm,
}

# callback prefix -> (state it is valid in, handler)
_CALLBACK_ROUTES: dict[str, tuple[DialogState, Callable[..., str]]] = {
    "event_type": (DialogState.ASK_EVENT_TYPE, EventCreationFSM._on_event_type),
    "deadline_preset": (DialogState.ASK_DEADLINE, EventCreationFSM._on_deadline_preset),
    "confirm": (DialogState.CONFIRM, EventCreationFSM._on_confirm),
}

for _table_name, _table in (("message handlers", _MESSAGE_HANDLERS), ("prompts", _PROMPTS)):
    _missing = [s.value for s in DialogState if s not in _table]
    if _missing:
        raise RuntimeError(f"dialog states without {_table_name}: {', '.join(_missing)}")
