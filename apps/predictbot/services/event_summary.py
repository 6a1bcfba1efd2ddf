"""Human-readable previews of a pending or created event."""
from __future__ import annotations

from datetime import datetime, tzinfo

from apps.predictbot.clients.event_manager import Event
from apps.predictbot.services import texts
from apps.predictbot.services.context_codec import EventCreationContext, EventType
from apps.predictbot.services.texts import Localizer

DEADLINE_FORMAT = "%d.%m.%Y %H:%M"

_TYPE_LABELS = {
    EventType.BINARY: texts.EVENT_TYPE_BINARY_LABEL,
    EventType.MULTI_OPTION: texts.EVENT_TYPE_MULTI_OPTION_LABEL,
    EventType.PROBABILITY: texts.EVENT_TYPE_PROBABILITY_LABEL,
}


def format_deadline(deadline: datetime | None, tz: tzinfo) -> str:
    if deadline is None:
        return ""
    return deadline.astimezone(tz).strftime(DEADLINE_FORMAT)


def event_type_label(event_type: EventType | None, localizer: Localizer) -> str:
    if event_type is None:
        return ""
    return localizer.localize(_TYPE_LABELS[event_type])


def _body(
    question: str,
    event_type: EventType | None,
    options: list[str],
    deadline: datetime | None,
    localizer: Localizer,
    tz: tzinfo,
) -> list[str]:
    lines = [
        localizer.localize(texts.SUMMARY_QUESTION, question),
        "",
        localizer.localize(texts.SUMMARY_TYPE, event_type_label(event_type, localizer)),
        "",
        localizer.localize(texts.SUMMARY_OPTIONS),
    ]
    for i, opt in enumerate(options, start=1):
        lines.append(localizer.localize(texts.SUMMARY_OPTION_ITEM, i, opt))
    lines.append("")
    lines.append(localizer.localize(texts.SUMMARY_DEADLINE, format_deadline(deadline, tz)))
    return lines


def build_event_summary(ctx: EventCreationContext, localizer: Localizer, tz: tzinfo) -> str:
    lines = [localizer.localize(texts.SUMMARY_TITLE), ""]
    lines += _body(ctx.question, ctx.event_type, ctx.options, ctx.deadline, localizer, tz)
    return "\n".join(lines)


def build_final_event_summary(
    event: Event,
    event_id: int,
    localizer: Localizer,
    tz: tzinfo,
    publication_ref: str = "",
) -> str:
    lines = [
        localizer.localize(texts.FINAL_SUMMARY_TITLE),
        "",
        localizer.localize(texts.FINAL_SUMMARY_ID, event_id),
        "",
    ]
    lines += _body(event.question, event.event_type, event.options, event.deadline, localizer, tz)
    if publication_ref:
        lines.append("")
        lines.append(f"📊 {publication_ref}")
    return "\n".join(lines)
