from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import UTC
from uuid import uuid4

from loguru import logger

from grandparent_coach.store.kv_store import Clock, KeyValueStore, utc_now
from grandparent_coach.store.models import (
    MAX_SUMMARY_CHARS,
    MAX_TITLE_CHARS,
    MAX_TOPIC_CHARS,
    Favorite,
    Message,
    Role,
    Session,
    clip,
)

SESSIONS_KEY = "gpc:sessions"
FAVORITES_KEY = "gpc:favorites"


def messages_key(session_id: str) -> str:
    return f"gpc:messages:{session_id}"


class SessionStore:
    """Conversation sessions, their message lists and saved favorites on top of a keyed store.

    Reads never raise: a storage fault is logged and an empty collection is
    returned. Writes return ``False`` when the underlying store keeps failing
    after its retries. Callers serialise writes to the same session.
    """

    def __init__(self, store: KeyValueStore, *, clock: Clock = utc_now):
        self._store = store
        self._clock = clock

    def list_sessions(self, *, limit: int | None = None) -> list[Session]:
        sessions = sorted(self._load_index(), key=lambda s: s.updated_at, reverse=True)
        if limit is not None:
            return sessions[: max(0, limit)]
        return sessions

    def get_session(self, session_id: str) -> Session | None:
        for session in self._load_index():
            if session.id == session_id:
                return session
        return None

    def create_session(self, title: str, *, session_id: str | None = None, topic: str | None = None) -> Session:
        now = self._stamp()
        session = Session(
            id=session_id or str(uuid4()),
            title=clip(title, MAX_TITLE_CHARS) or "",
            created_at=now,
            updated_at=now,
            topic=clip(topic, MAX_TOPIC_CHARS),
        )
        sessions = self._load_index()
        if any(s.id == session.id for s in sessions):
            raise ValueError(f"Session already exists: {session.id}")
        if self._write_index([session, *sessions]):
            logger.debug(f"Created session {session.id}")
        return session

    def rename_session(self, session_id: str, title: str) -> bool:
        cleaned = clip(title, MAX_TITLE_CHARS) or ""
        return self._update_session(session_id, lambda s: replace(s, title=cleaned, updated_at=self._next_stamp(s)))

    def touch_session(self, session_id: str) -> bool:
        return self._update_session(session_id, lambda s: replace(s, updated_at=self._next_stamp(s)))

    def delete_session(self, session_id: str) -> bool:
        """Remove the session, its messages and any favorites pointing at it in one write."""
        remaining = [s.to_record() for s in self._load_index() if s.id != session_id]
        favorites = [f.to_record() for f in self._load_favorites() if f.session_id != session_id]
        try:
            self._store.apply(
                {SESSIONS_KEY: remaining, FAVORITES_KEY: favorites},
                removes=[messages_key(session_id)],
            )
        except sqlite3.Error as ex:
            logger.warning(f"Failed to delete session {session_id}: {ex}")
            return False
        logger.debug(f"Deleted session {session_id}")
        return True

    def list_messages(self, session_id: str) -> list[Message]:
        try:
            raw = self._store.get(messages_key(session_id)) or []
            return [Message.from_record(record) for record in raw]
        except (sqlite3.Error, ValueError, KeyError, TypeError) as ex:
            logger.warning(f"Failed to load messages for session {session_id}: {ex}")
            return []

    def new_message(self, role: Role | str, content: str) -> Message:
        return Message(id=str(uuid4()), role=role, content=content, created_at=self._stamp())

    def append_messages(self, session_id: str, messages: list[Message]) -> bool:
        """Append messages and bump the session timestamp in one write."""
        sessions = self._load_index()
        target = next((s for s in sessions if s.id == session_id), None)
        if target is None:
            raise ValueError(f"Session does not exist: {session_id}")
        if not messages:
            return True

        existing = self.list_messages(session_id)
        touched = replace(target, updated_at=self._next_stamp(target))
        index = [touched.to_record() if s.id == session_id else s.to_record() for s in sessions]
        try:
            self._store.apply(
                {
                    messages_key(session_id): [m.to_record() for m in [*existing, *messages]],
                    SESSIONS_KEY: index,
                }
            )
        except sqlite3.Error as ex:
            logger.warning(f"Failed to append {len(messages)} message(s) to session {session_id}: {ex}")
            return False
        return True

    def add_favorite(self, session_id: str, title: str, summary: str | None = None) -> Favorite | None:
        """Save a session as a favorite. Returns ``None`` if the write failed."""
        session = self.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")
        favorite = Favorite(
            id=str(uuid4()),
            session_id=session_id,
            title=clip(title, MAX_TITLE_CHARS) or session.title,
            created_at=self._stamp(),
            summary=self._clip_summary(summary),
        )
        if not self._write_favorites([favorite, *self._load_favorites()]):
            return None
        logger.debug(f"Saved favorite {favorite.id} for session {session_id}")
        return favorite

    def list_favorites(self) -> list[Favorite]:
        return sorted(self._load_favorites(), key=lambda f: f.created_at, reverse=True)

    def remove_favorite(self, favorite_id: str) -> bool:
        favorites = self._load_favorites()
        remaining = [f for f in favorites if f.id != favorite_id]
        if len(remaining) == len(favorites):
            return False
        return self._write_favorites(remaining)

    def _update_session(self, session_id: str, change) -> bool:
        sessions = self._load_index()
        if not any(s.id == session_id for s in sessions):
            raise ValueError(f"Session does not exist: {session_id}")
        return self._write_index([change(s) if s.id == session_id else s for s in sessions])

    def _load_index(self) -> list[Session]:
        try:
            raw = self._store.get(SESSIONS_KEY) or []
            return [Session.from_record(record) for record in raw]
        except (sqlite3.Error, ValueError, KeyError, TypeError) as ex:
            logger.warning(f"Failed to load session index: {ex}")
            return []

    def _write_index(self, sessions: list[Session]) -> bool:
        try:
            self._store.set(SESSIONS_KEY, [s.to_record() for s in sessions])
        except sqlite3.Error as ex:
            logger.warning(f"Failed to write session index: {ex}")
            return False
        return True

    def _load_favorites(self) -> list[Favorite]:
        try:
            raw = self._store.get(FAVORITES_KEY) or []
            return [Favorite.from_record(record) for record in raw]
        except (sqlite3.Error, ValueError, KeyError, TypeError) as ex:
            logger.warning(f"Failed to load favorites: {ex}")
            return []

    def _write_favorites(self, favorites: list[Favorite]) -> bool:
        try:
            self._store.set(FAVORITES_KEY, [f.to_record() for f in favorites])
        except sqlite3.Error as ex:
            logger.warning(f"Failed to write favorites: {ex}")
            return False
        return True

    @staticmethod
    def _clip_summary(summary: str | None) -> str | None:
        if not summary or not summary.strip():
            return None
        return summary.strip()[:MAX_SUMMARY_CHARS]

    def _stamp(self) -> str:
        return self._clock().astimezone(UTC).isoformat(timespec="microseconds")

    def _next_stamp(self, session: Session) -> str:
        # updated_at never moves backwards, even if the clock does
        return max(self._stamp(), session.updated_at)
