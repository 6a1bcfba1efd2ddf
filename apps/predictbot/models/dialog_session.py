"""Event-creation dialog session, one row per principal."""
import enum
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, String, Text

from apps.predictbot.database import Base


class DialogState(str, enum.Enum):
    """Persisted dialog states; completed/cancelled dialogs have no row."""

    ASK_QUESTION = "ask_question"
    ASK_EVENT_TYPE = "ask_event_type"
    ASK_OPTIONS = "ask_options"
    ASK_DEADLINE = "ask_deadline"
    CONFIRM = "confirm"


class DialogSession(Base):
    __tablename__ = "dialog_sessions"

    principal_id = Column(BigInteger, primary_key=True, autoincrement=False)
    state = Column(String(32), nullable=False)
    context_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
