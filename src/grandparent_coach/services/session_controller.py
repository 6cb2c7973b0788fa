from __future__ import annotations

from grandparent_coach.store import Favorite, Message, Role, Session


class SessionController:
    """Text formatting for sessions and transcripts in the console client."""

    def __init__(self, *, line_prefix: str, short_id_len: int = 8, preview_chars: int = 80):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len
        self._preview_chars = preview_chars

    def short_id(self, value: str) -> str:
        if len(value) <= self._short_id_len:
            return value
        return value[: self._short_id_len]

    def format_session_list_entry(self, session: Session, *, active_session_id: str | None) -> str:
        marker = "*" if session.id == active_session_id else " "
        title = session.title or "Conversation"
        return (
            f"{self._line_prefix}{marker} {title} [{self.short_id(session.id)}] "
            f"(id={session.id}, updated={session.updated_at[:16].replace('T', ' ')})"
        )

    def format_favorite_entry(self, favorite: Favorite) -> str:
        saved = favorite.created_at[:10]
        line = f"{self._line_prefix}{favorite.title} [{self.short_id(favorite.id)}] (saved {saved})"
        if favorite.summary:
            line += f"\n{self._line_prefix}  {self._preview(favorite.summary)}"
        return line

    def format_transcript_lines(self, messages: list[Message]) -> list[str]:
        lines: list[str] = []
        for message in messages:
            if message.role is Role.SYSTEM:
                continue
            who = "you" if message.role is Role.USER else "coach"
            lines.append(f"{self._line_prefix}{who}: {self._preview(message.content)}")
        return lines

    def _preview(self, text: str) -> str:
        text = " ".join(text.split())
        if len(text) <= self._preview_chars:
            return text
        return text[: self._preview_chars - 3] + "..."
