"""Зависимости FastAPI."""
from datetime import timedelta
from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from apps.predictbot.clients.event_manager import HttpEventManager
from apps.predictbot.clients.telegram import TelegramTransport
from apps.predictbot.config import Settings, get_settings
from apps.predictbot.database import get_session_factory
from apps.predictbot.services.event_creation_fsm import EventCreationFSM
from apps.predictbot.services.session_store import SessionStore
from apps.predictbot.services.texts import DefaultLocalizer


@lru_cache
def get_app_session_factory() -> sessionmaker:
    return get_session_factory()


def get_db() -> Generator[Session, None, None]:
    factory = get_app_session_factory()
    sess = factory()
    try:
        yield sess
    finally:
        sess.close()


def build_fsm(settings: Settings, session_factory: sessionmaker) -> EventCreationFSM:
    store = SessionStore(session_factory, ttl=timedelta(minutes=settings.session_ttl_minutes))
    return EventCreationFSM(
        store=store,
        transport=TelegramTransport(settings.telegram_bot_token),
        event_manager=HttpEventManager(settings.event_manager_url, timeout=settings.event_manager_timeout_seconds),
        localizer=DefaultLocalizer(locale=settings.locale),
        tz=settings.tz,
        delete_backoff_seconds=settings.message_delete_backoff_seconds,
    )


def get_fsm(settings: Settings = Depends(get_settings)) -> EventCreationFSM:
    return build_fsm(settings, get_app_session_factory())
