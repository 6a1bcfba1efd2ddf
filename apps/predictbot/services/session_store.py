"""Durable dialog sessions keyed by principal (Telegram user id)."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import case, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from apps.predictbot.models.dialog_session import DialogSession, DialogState
from apps.predictbot.services.context_codec import DecodeError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(minutes=30)


class SessionNotFound(Exception):
    def __init__(self, principal_id: int):
        super().__init__(f"session not found: {principal_id}")
        self.principal_id = principal_id


class SessionExpired(Exception):
    def __init__(self, principal_id: int, updated_at: datetime):
        super().__init__(f"session expired: {principal_id}")
        self.principal_id = principal_id
        self.updated_at = updated_at


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"upsert not supported for dialect {dialect_name}")


class SessionStore:
    """principal -> (state, context map, updated_at) over the dialog_sessions table.

    Every call runs in its own short transaction; nothing is cached in process.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self._factory = session_factory
        self.ttl = ttl
        self._now = now

    def set(self, principal_id: int, state: DialogState, context: dict[str, str]) -> None:
        if not isinstance(state, DialogState):
            raise ValueError(f"not a dialog state: {state!r}")
        if not isinstance(context, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in context.items()
        ):
            raise TypeError("context must map str to str")
        payload = json.dumps(context, ensure_ascii=False, sort_keys=True)
        now = self._now()
        with self._factory() as db:
            insert = _insert_for(db.get_bind().dialect.name)
            stmt = insert(DialogSession).values(
                principal_id=principal_id,
                state=state.value,
                context_json=payload,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[DialogSession.principal_id],
                set_={
                    "state": stmt.excluded.state,
                    "context_json": stmt.excluded.context_json,
                    # updated_at never moves backwards for a principal
                    "updated_at": case(
                        (DialogSession.updated_at > stmt.excluded.updated_at, DialogSession.updated_at),
                        else_=stmt.excluded.updated_at,
                    ),
                },
            )
            db.execute(stmt)
            db.commit()
        logger.debug("session stored principal_id=%s state=%s", principal_id, state.value)

    def get(self, principal_id: int) -> tuple[DialogState, dict[str, str]]:
        with self._factory() as db:
            row = self._load_live(db, principal_id)
            state_raw, context_raw = row.state, row.context_json
        try:
            state = DialogState(state_raw)
        except ValueError:
            raise DecodeError(f"unknown dialog state: {state_raw[:32]!r}", "state") from None
        try:
            context = json.loads(context_raw or "")
        except ValueError:
            raise DecodeError("stored context is not valid JSON") from None
        if not isinstance(context, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in context.items()
        ):
            raise DecodeError("stored context is not a string map")
        logger.debug("session retrieved principal_id=%s state=%s", principal_id, state.value)
        return state, context

    def exists(self, principal_id: int) -> bool:
        try:
            with self._factory() as db:
                self._load_live(db, principal_id)
        except (SessionNotFound, SessionExpired):
            return False
        return True

    def delete(self, principal_id: int) -> bool:
        with self._factory() as db:
            result = db.execute(delete(DialogSession).where(DialogSession.principal_id == principal_id))
            db.commit()
        removed = bool(result.rowcount)
        if not removed:
            logger.debug("session not found for deletion principal_id=%s", principal_id)
        else:
            logger.debug("session deleted principal_id=%s", principal_id)
        return removed

    def _load_live(self, db: Session, principal_id: int) -> DialogSession:
        row = db.execute(
            select(DialogSession).where(DialogSession.principal_id == principal_id)
        ).scalar_one_or_none()
        if row is None:
            raise SessionNotFound(principal_id)
        if self._now() - row.updated_at > self.ttl:
            updated_at = row.updated_at
            # Only remove the row we looked at; a concurrent Set may have refreshed it.
            db.execute(
                delete(DialogSession).where(
                    DialogSession.principal_id == principal_id,
                    DialogSession.updated_at == updated_at,
                )
            )
            db.commit()
            logger.info("session expired principal_id=%s updated_at=%s", principal_id, updated_at)
            raise SessionExpired(principal_id, updated_at)
        return row
