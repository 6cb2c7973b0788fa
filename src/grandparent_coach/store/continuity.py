from __future__ import annotations

from grandparent_coach.store.models import MAX_HISTORY_CHARS
from grandparent_coach.store.session_store import SessionStore

SESSION_SEPARATOR = "\n"
MESSAGE_SEPARATOR = " | "


class ContextAggregator:
    """Builds a short digest of recent conversations for the model to refer back to."""

    def __init__(self, sessions: SessionStore):
        self._sessions = sessions

    def build_continuity_digest(
        self,
        exclude_session_id: str | None,
        *,
        max_sessions: int = 5,
        max_messages_per_session: int = 4,
        max_chars_per_message: int = 100,
        max_title_chars: int = 60,
        max_total_chars: int = MAX_HISTORY_CHARS,
    ) -> str:
        others = [s for s in self._sessions.list_sessions() if s.id != exclude_session_id]
        summaries: list[str] = []
        used = 0
        for session in others[: max(0, max_sessions)]:
            messages = self._sessions.list_messages(session.id)[: max(0, max_messages_per_session)]
            if not messages:
                continue
            title = _truncate(session.title, max_title_chars) or "Conversation"
            lines = [f"{m.role.value}: {_truncate(m.content, max_chars_per_message)}" for m in messages]
            summary = f"[{title}] " + MESSAGE_SEPARATOR.join(lines)
            # whole sessions only; stop before the digest outgrows the gateway's limit
            cost = len(summary) + (len(SESSION_SEPARATOR) if summaries else 0)
            if used + cost > max_total_chars:
                break
            summaries.append(summary)
            used += cost
        return SESSION_SEPARATOR.join(summaries)


def _truncate(text: str, max_chars: int) -> str:
    text = " ".join(text.split())
    return text[: max(0, max_chars)]
