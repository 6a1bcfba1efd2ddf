"""Модели SQLAlchemy."""
from apps.predictbot.models.dialog_session import DialogSession, DialogState

__all__ = [
    "DialogSession",
    "DialogState",
]
