from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from grandparent_coach.store.models import (
    MAX_AGE_RANGE_CHARS,
    MAX_HISTORY_CHARS,
    MAX_MESSAGE_CHARS,
    MAX_TOPIC_CHARS,
    Role,
)


class ChatMessage(BaseModel):
    role: Role
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS)


class CoachContext(BaseModel):
    """Optional coaching context; every supplied field ends up in the system prompt."""

    model_config = ConfigDict(populate_by_name=True)

    topic: str | None = Field(default=None, max_length=MAX_TOPIC_CHARS)
    age_range: str | None = Field(default=None, alias="ageRange", max_length=MAX_AGE_RANGE_CHARS)
    situation_type: str | None = Field(default=None, alias="situationType", max_length=100)
    attempted: str | None = Field(default=None, max_length=1000)
    urgency: bool | None = None
    user_notes: str | None = Field(default=None, alias="userNotes", max_length=1000)
    conversation_history: str | None = Field(
        default=None, alias="conversationHistory", max_length=MAX_HISTORY_CHARS
    )


class CoachRequest(BaseModel):
    # full session history; each message is bounded, the list is not
    messages: list[ChatMessage] = Field(..., min_length=1)
    context: CoachContext = Field(default_factory=CoachContext)


class SummarizeRequest(BaseModel):
    transcript: str | None = Field(default=None, max_length=1_000_000)
    messages: list[ChatMessage] | None = None
    audience: str | None = Field(default=None, max_length=100)


class ContentResponse(BaseModel):
    content: str
    safety: str | None = Field(
        default=None, description="'crisis' or 'medical' when a canned reply was returned"
    )


class ErrorResponse(BaseModel):
    """Error body shared by every non-2xx gateway reply."""

    error: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: dict | None = None
