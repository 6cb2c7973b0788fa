from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from loguru import logger

from grandparent_coach.client.gateway_client import GatewayError, GatewayRateLimitedError
from grandparent_coach.client.topics import DEFAULT_TITLE, GREETING, clarifying_prompt_for, generate_title
from grandparent_coach.safety import classify
from grandparent_coach.store import ContextAggregator, Favorite, Message, Role, Session, SessionStore, UsageCounter
from grandparent_coach.store.models import MAX_AGE_RANGE_CHARS, MAX_MESSAGE_CHARS, MAX_TOPIC_CHARS, clip, validate_content


class CoachGateway(Protocol):
    async def coach(self, messages: list[dict], context: dict | None = None) -> str: ...

    async def summarize(
        self,
        *,
        messages: list[dict] | None = None,
        transcript: str | None = None,
        audience: str | None = None,
    ) -> str: ...


class Outcome(str, Enum):
    REPLIED = "replied"
    SAFETY_BLOCKED = "safety_blocked"
    UPGRADE_REQUIRED = "upgrade_required"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnResult:
    outcome: Outcome
    session_id: str
    user_message: Message | None = None
    assistant_message: Message | None = None
    content: str | None = None
    error: str | None = None
    retry_after: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.REPLIED, Outcome.SAFETY_BLOCKED)


UPGRADE_MESSAGE = (
    "You've used all of your free coaching replies. Upgrade to keep chatting with your coach."
)
RETRY_MESSAGE = "Something went wrong reaching your coach. Please try again."
RATE_LIMITED_MESSAGE = "You're sending messages quickly. Please wait a moment and try again."


class DialogueOrchestrator:
    """Runs one coaching conversation at a time on top of the local session store.

    ``send`` writes the user's message before any network call. Sends to the
    same session are serialised, so turns are appended in order. Gateway
    failures leave stored messages and the usage counter untouched.
    """

    def __init__(
        self,
        sessions: SessionStore,
        usage: UsageCounter,
        gateway: CoachGateway,
        *,
        aggregator: ContextAggregator | None = None,
        is_pro: Callable[[], bool] = lambda: False,
        free_tier_limit: int = 3,
        age_range: str | None = None,
    ):
        self._sessions = sessions
        self._usage = usage
        self._gateway = gateway
        self._aggregator = aggregator or ContextAggregator(sessions)
        self._is_pro = is_pro
        self._free_tier_limit = free_tier_limit
        self._age_range = age_range
        self._locks: dict[str, asyncio.Lock] = {}
        self._start_lock = asyncio.Lock()
        self.active_session: Session | None = None
        self.messages: list[Message] = []
        self.session_list: list[Session] = self._sessions.list_sessions()

    @property
    def usage_count(self) -> int:
        return self._usage.get()

    @property
    def free_replies_left(self) -> int | None:
        if self._is_pro():
            return None
        return max(0, self._free_tier_limit - self._usage.get())

    def refresh_sessions(self) -> list[Session]:
        self.session_list = self._sessions.list_sessions()
        return self.session_list

    def start_session(self, topic: str | None = None, *, greet: bool = True) -> Session:
        session = self._sessions.create_session(DEFAULT_TITLE, topic=topic)
        seeded: list[Message] = []
        if greet:
            seeded.append(self._sessions.new_message(Role.ASSISTANT, GREETING))
            prompt = clarifying_prompt_for(topic)
            if prompt:
                seeded.append(self._sessions.new_message(Role.ASSISTANT, prompt))
            self._sessions.append_messages(session.id, seeded)
        self.active_session = self._sessions.get_session(session.id) or session
        self.messages = seeded
        self.refresh_sessions()
        logger.info(f"Started session {session.id} (topic={topic or '-'})")
        return self.active_session

    def open_session(self, session_id: str) -> list[Message]:
        session = self._sessions.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")
        self.active_session = session
        self.messages = self._sessions.list_messages(session_id)
        return self.messages

    def close_session(self) -> None:
        self.active_session = None
        self.messages = []

    def rename_session(self, session_id: str, title: str) -> None:
        self._sessions.rename_session(session_id, title)
        if self.active_session is not None and self.active_session.id == session_id:
            self.active_session = self._sessions.get_session(session_id) or self.active_session
        self.refresh_sessions()

    def delete_session(self, session_id: str) -> bool:
        deleted = self._sessions.delete_session(session_id)
        self._locks.pop(session_id, None)
        if self.active_session is not None and self.active_session.id == session_id:
            self.close_session()
        self.refresh_sessions()
        return deleted

    def reset_usage(self) -> bool:
        """Called after an upgrade or a restored purchase."""
        return self._usage.reset()

    def add_favorite(
        self,
        title: str | None = None,
        *,
        summary: str | None = None,
        session_id: str | None = None,
    ) -> Favorite | None:
        target = session_id or (self.active_session.id if self.active_session else None)
        if target is None:
            raise ValueError("No session to save as a favorite")
        return self._sessions.add_favorite(target, title or "", summary)

    def list_favorites(self) -> list[Favorite]:
        return self._sessions.list_favorites()

    def remove_favorite(self, favorite_id: str) -> bool:
        return self._sessions.remove_favorite(favorite_id)

    async def send(self, content: str) -> TurnResult:
        validate_content(content)

        async with self._start_lock:
            if self.active_session is None:
                self.start_session(greet=False)
            session_id = self.active_session.id

        async with self._lock_for(session_id):
            return await self._send_turn(session_id, content)

    async def summarize_session(self, session_id: str | None = None, *, audience: str | None = None) -> TurnResult:
        target = session_id or (self.active_session.id if self.active_session else None)
        if target is None:
            raise ValueError("No session to summarize")
        history = [m.as_chat() for m in self._sessions.list_messages(target) if m.role is not Role.SYSTEM]
        if not history:
            raise ValueError(f"Session has no messages to summarize: {target}")
        try:
            summary = await self._gateway.summarize(messages=history, audience=audience)
        except GatewayRateLimitedError as ex:
            return TurnResult(Outcome.RATE_LIMITED, target, error=RATE_LIMITED_MESSAGE, retry_after=ex.retry_after)
        except GatewayError as ex:
            logger.warning(f"Summary failed for session {target}: {ex}")
            return TurnResult(Outcome.FAILED, target, error=RETRY_MESSAGE)
        return TurnResult(Outcome.REPLIED, target, content=summary)

    async def _send_turn(self, session_id: str, content: str) -> TurnResult:
        history = self._sessions.list_messages(session_id)
        is_first_user_message = not any(m.role is Role.USER for m in history)

        user_message = self._sessions.new_message(Role.USER, content)
        self._sessions.append_messages(session_id, [user_message])
        history.append(user_message)
        self._sync_local(session_id, user_message)

        if is_first_user_message:
            self._sessions.rename_session(session_id, generate_title(content))

        verdict = classify(content)
        if not verdict.is_safe:
            logger.info(f"Safety block ({verdict.verdict.value}) in session {session_id}")
            reply = self._sessions.new_message(Role.ASSISTANT, verdict.response or "")
            self._store_reply(session_id, reply)
            return TurnResult(
                Outcome.SAFETY_BLOCKED, session_id, user_message, reply, content=reply.content
            )

        if not self._is_pro() and self._usage.exceeded(self._free_tier_limit):
            logger.info(f"Free tier exhausted ({self._usage.get()}/{self._free_tier_limit})")
            self.refresh_sessions()
            return TurnResult(Outcome.UPGRADE_REQUIRED, session_id, user_message, error=UPGRADE_MESSAGE)

        context = self._build_context(session_id)
        try:
            text = await self._gateway.coach([m.as_chat() for m in history], context)
        except GatewayRateLimitedError as ex:
            self.refresh_sessions()
            return TurnResult(
                Outcome.RATE_LIMITED,
                session_id,
                user_message,
                error=RATE_LIMITED_MESSAGE,
                retry_after=ex.retry_after,
            )
        except GatewayError as ex:
            logger.warning(f"Coach request failed for session {session_id}: {ex}")
            self.refresh_sessions()
            return TurnResult(Outcome.FAILED, session_id, user_message, error=RETRY_MESSAGE)

        if not text.strip():
            logger.warning(f"Coach returned an empty reply for session {session_id}")
            self.refresh_sessions()
            return TurnResult(Outcome.FAILED, session_id, user_message, error=RETRY_MESSAGE)

        reply = self._sessions.new_message(Role.ASSISTANT, text[:MAX_MESSAGE_CHARS])
        self._store_reply(session_id, reply)
        if not self._is_pro():
            self._usage.increment()
        return TurnResult(Outcome.REPLIED, session_id, user_message, reply, content=reply.content)

    def _store_reply(self, session_id: str, reply: Message) -> None:
        self._sessions.append_messages(session_id, [reply])
        self._sync_local(session_id, reply)
        self.refresh_sessions()

    def _sync_local(self, session_id: str, message: Message) -> None:
        # the user may have switched sessions while a reply was in flight
        if self.active_session is not None and self.active_session.id == session_id:
            self.messages.append(message)
            self.active_session = self._sessions.get_session(session_id) or self.active_session

    def _build_context(self, session_id: str) -> dict:
        context: dict = {}
        session = self._sessions.get_session(session_id)
        topic = clip(session.topic if session else None, MAX_TOPIC_CHARS)
        if topic:
            context["topic"] = topic
        age_range = clip(self._age_range, MAX_AGE_RANGE_CHARS)
        if age_range:
            context["ageRange"] = age_range
        digest = self._aggregator.build_continuity_digest(session_id)
        if digest:
            context["conversationHistory"] = digest
        return context

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock
