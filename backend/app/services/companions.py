"""
Relational accessor for companions, categories and per-user messages.

All methods are synchronous and open their own session; async callers run
them through the threadpool.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from backend.app.core.db.relational import DBCategory, DBCompanion, DBMessage, session_scope
from backend.app.orchestrator.types import CompanionRecord, MessageRecord

COMPANION_FIELDS = ("src", "name", "description", "instructions", "seed", "category_id")
DEFAULT_CATEGORIES = (
    "Famous People",
    "Movies & TV",
    "Musicians",
    "Games",
    "Animals",
    "Philosophy",
    "Scientists",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _message_record(row: DBMessage) -> MessageRecord:
    return MessageRecord(
        id=row.id,
        role=row.role,
        content=row.content,
        user_id=row.user_id,
        companion_id=row.companion_id,
        created_at=row.created_at,
    )


def _companion_record(
    row: DBCompanion,
    messages: Optional[list[DBMessage]] = None,
    message_count: int = 0,
) -> CompanionRecord:
    return CompanionRecord(
        id=row.id,
        user_id=row.user_id,
        user_name=row.user_name,
        src=row.src,
        name=row.name,
        description=row.description,
        instructions=row.instructions,
        seed=row.seed,
        category_id=row.category_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        messages=[_message_record(m) for m in (messages or [])],
        message_count=message_count,
    )


class CompanionRepository:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_with_recent_messages(self, companion_id: str, user_id: str, limit: int = 50) -> CompanionRecord | None:
        """Companion plus the caller's newest ``limit`` messages, newest first."""
        with session_scope(self.session_factory) as db:
            companion = db.get(DBCompanion, companion_id)
            if companion is None:
                return None
            messages = db.scalars(
                select(DBMessage)
                .where(DBMessage.companion_id == companion_id, DBMessage.user_id == user_id)
                .order_by(DBMessage.created_at.desc())
                .limit(limit)
            ).all()
            return _companion_record(companion, list(messages))

    def get_transcript(self, companion_id: str, user_id: str) -> CompanionRecord | None:
        """Companion plus all of the caller's messages, oldest first."""
        with session_scope(self.session_factory) as db:
            companion = db.get(DBCompanion, companion_id)
            if companion is None:
                return None
            messages = db.scalars(
                select(DBMessage)
                .where(DBMessage.companion_id == companion_id, DBMessage.user_id == user_id)
                .order_by(DBMessage.created_at.asc())
            ).all()
            total = db.scalar(
                select(func.count(DBMessage.id)).where(DBMessage.companion_id == companion_id)
            )
            return _companion_record(companion, list(messages), message_count=int(total or 0))

    def add_message(self, companion_id: str, user_id: str, role: str, content: str) -> MessageRecord:
        with session_scope(self.session_factory) as db:
            row = DBMessage(
                companion_id=companion_id,
                user_id=user_id,
                role=role,
                content=content,
                created_at=_utc_now(),
                updated_at=_utc_now(),
            )
            db.add(row)
            db.flush()
            return _message_record(row)

    def count_messages(self, companion_id: Optional[str] = None) -> int:
        with session_scope(self.session_factory) as db:
            query = select(func.count(DBMessage.id))
            if companion_id:
                query = query.where(DBMessage.companion_id == companion_id)
            return int(db.scalar(query) or 0)

    def list_companions(self, category_id: Optional[str] = None, name: Optional[str] = None) -> list[CompanionRecord]:
        with session_scope(self.session_factory) as db:
            counts = (
                select(DBMessage.companion_id, func.count(DBMessage.id).label("message_count"))
                .group_by(DBMessage.companion_id)
                .subquery()
            )
            query = (
                select(DBCompanion, func.coalesce(counts.c.message_count, 0))
                .outerjoin(counts, counts.c.companion_id == DBCompanion.id)
                .order_by(DBCompanion.created_at.desc())
            )
            if category_id:
                query = query.where(DBCompanion.category_id == category_id)
            if name and name.strip():
                query = query.where(func.lower(DBCompanion.name).contains(name.strip().lower(), autoescape=True))
            rows = db.execute(query).all()
            return [_companion_record(companion, message_count=int(count)) for companion, count in rows]

    def list_categories(self) -> list[dict[str, Any]]:
        with session_scope(self.session_factory) as db:
            rows = db.scalars(select(DBCategory).order_by(DBCategory.name.asc())).all()
            return [{"id": row.id, "name": row.name} for row in rows]

    def ensure_category(self, name: str) -> str:
        clean = (name or "").strip()
        if not clean:
            raise ValueError("Category name is required")
        with session_scope(self.session_factory) as db:
            existing = db.scalar(select(DBCategory).where(DBCategory.name == clean))
            if existing:
                return existing.id
            row = DBCategory(name=clean)
            db.add(row)
            db.flush()
            return row.id

    def category_exists(self, category_id: str) -> bool:
        with session_scope(self.session_factory) as db:
            return db.get(DBCategory, category_id) is not None

    def get_owned(self, companion_id: str, user_id: str) -> CompanionRecord | None:
        with session_scope(self.session_factory) as db:
            row = db.get(DBCompanion, companion_id)
            if row is None or row.user_id != user_id:
                return None
            return _companion_record(row)

    def create_companion(self, user_id: str, user_name: str, fields: dict[str, Any]) -> CompanionRecord:
        values = {k: v for k, v in fields.items() if k in COMPANION_FIELDS}
        with session_scope(self.session_factory) as db:
            row = DBCompanion(
                user_id=user_id,
                user_name=user_name or "",
                created_at=_utc_now(),
                updated_at=_utc_now(),
                **values,
            )
            db.add(row)
            db.flush()
            return _companion_record(row)

    def update_companion(self, companion_id: str, user_id: str, fields: dict[str, Any]) -> CompanionRecord | None:
        with session_scope(self.session_factory) as db:
            row = db.get(DBCompanion, companion_id)
            if row is None or row.user_id != user_id:
                return None
            for key, value in fields.items():
                if key in COMPANION_FIELDS:
                    setattr(row, key, value)
            row.updated_at = _utc_now()
            db.flush()
            return _companion_record(row)

    def delete_companion(self, companion_id: str, user_id: str) -> bool:
        with session_scope(self.session_factory) as db:
            row = db.get(DBCompanion, companion_id)
            if row is None or row.user_id != user_id:
                return False
            db.delete(row)
            return True

    def seed_categories(self, names: tuple[str, ...] = DEFAULT_CATEGORIES) -> int:
        return len([self.ensure_category(name) for name in names])
