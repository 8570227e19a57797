import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update

from prompt_enhancer.models.database_models import EnhancementSessionRecord
from prompt_enhancer.models.enhancement import EnhancementOptions, EnhancementSession, SessionStatus
from prompt_enhancer.services.database import DatabaseService, as_utc
from prompt_enhancer.services.errors import SessionStateError

logger = logging.getLogger(__name__)

SETTLEMENT_FIELDS = {"status", "enhanced_content", "error_message", "api_response_time"}


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - SETTLEMENT_FIELDS
    if unknown:
        raise ValueError(f"Session fields cannot be updated: {sorted(unknown)}")
    status = fields.get("status")
    if status is not None and not SessionStatus(status).is_terminal:
        raise ValueError("A session can only be updated to a terminal status")


def _to_session(record: EnhancementSessionRecord) -> EnhancementSession:
    return EnhancementSession(
        id=record.id,
        user_id=record.user_id,
        prompt_id=record.prompt_id,
        original_content=record.original_content,
        enhanced_content=record.enhanced_content,
        options=EnhancementOptions.from_dict(record.options),
        status=SessionStatus(record.status),
        error_message=record.error_message,
        api_response_time=record.api_response_time,
        created_at=as_utc(record.created_at),
    )


class SqlSessionStore:
    """Enhancement sessions kept in the enhancement_sessions table."""

    def __init__(self, database: DatabaseService):
        self.database = database

    async def create_session(self, session: EnhancementSession) -> EnhancementSession:
        record = EnhancementSessionRecord(
            id=session.id,
            user_id=session.user_id,
            prompt_id=session.prompt_id,
            original_content=session.original_content,
            options=session.options.to_dict(),
            status=session.status.value,
            created_at=session.created_at,
        )
        db_session = await self.database.get_session()
        async with db_session, db_session.begin():
            db_session.add(record)
        return session

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> EnhancementSession:
        """
        Settle a pending session.

        The UPDATE only matches rows still in 'pending', so a settled session is never rewritten.

        Raises:
            SessionStateError: If the session does not exist or is already settled
        """
        _check_fields(fields)
        values = {key: (value.value if isinstance(value, SessionStatus) else value)
                  for key, value in fields.items()}
        db_session = await self.database.get_session()
        async with db_session, db_session.begin():
            result = await db_session.execute(
                update(EnhancementSessionRecord)
                .where(EnhancementSessionRecord.id == session_id)
                .where(EnhancementSessionRecord.status == SessionStatus.PENDING.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise SessionStateError(f"Session {session_id} is missing or already settled")
            record = await db_session.get(EnhancementSessionRecord, session_id)
            return _to_session(record)

    async def get_session(self, session_id: str) -> Optional[EnhancementSession]:
        db_session = await self.database.get_session()
        async with db_session:
            record = await db_session.get(EnhancementSessionRecord, session_id)
            return _to_session(record) if record is not None else None

    async def get_sessions_by_user(self, user_id: str, prompt_id: Optional[str] = None,
                                   limit: int = 50) -> List[EnhancementSession]:
        """Sessions for a user, newest first, optionally narrowed to one prompt."""
        stmt = select(EnhancementSessionRecord).where(EnhancementSessionRecord.user_id == user_id)
        if prompt_id is not None:
            stmt = stmt.where(EnhancementSessionRecord.prompt_id == prompt_id)
        stmt = stmt.order_by(EnhancementSessionRecord.created_at.desc()).limit(limit)

        db_session = await self.database.get_session()
        async with db_session:
            result = await db_session.execute(stmt)
            return [_to_session(record) for record in result.scalars().all()]


class InMemorySessionStore:
    """Process-local session store, for development and tests."""

    def __init__(self):
        self._sessions: Dict[str, EnhancementSession] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, session: EnhancementSession) -> EnhancementSession:
        async with self._lock:
            if session.id in self._sessions:
                raise SessionStateError(f"Session {session.id} already exists")
            self._sessions[session.id] = replace(session)
        return session

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> EnhancementSession:
        _check_fields(fields)
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.status.is_terminal:
                raise SessionStateError(f"Session {session_id} is missing or already settled")
            values = dict(fields)
            if "status" in values:
                values["status"] = SessionStatus(values["status"])
            updated = replace(current, **values)
            self._sessions[session_id] = updated
            return replace(updated)

    async def get_session(self, session_id: str) -> Optional[EnhancementSession]:
        session = self._sessions.get(session_id)
        return replace(session) if session is not None else None

    async def get_sessions_by_user(self, user_id: str, prompt_id: Optional[str] = None,
                                   limit: int = 50) -> List[EnhancementSession]:
        sessions = [
            replace(s) for s in self._sessions.values()
            if s.user_id == user_id and (prompt_id is None or s.prompt_id == prompt_id)
        ]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions[:limit]
