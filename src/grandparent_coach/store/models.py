from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

MAX_MESSAGE_CHARS = 4000
MAX_TITLE_CHARS = 100
MAX_TOPIC_CHARS = 100
MAX_AGE_RANGE_CHARS = 50
MAX_SUMMARY_CHARS = 8000
MAX_HISTORY_CHARS = 8000


class MessageValidationError(ValueError):
    pass


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def validate_content(content: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise MessageValidationError("Message content must not be empty")
    if len(content) > MAX_MESSAGE_CHARS:
        raise MessageValidationError(
            f"Message content exceeds {MAX_MESSAGE_CHARS} characters ({len(content)})"
        )
    return content


def parse_role(value: str | Role) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise MessageValidationError(f"Unknown message role: {value!r}") from None


def clip(text: str | None, max_chars: int) -> str | None:
    """Collapse whitespace and cut to ``max_chars``; blank input becomes ``None``."""
    if text is None:
        return None
    cleaned = " ".join(text.split())[: max(0, max_chars)].rstrip()
    return cleaned or None


@dataclass(frozen=True)
class Session:
    id: str
    title: str
    created_at: str
    updated_at: str
    topic: str | None = None

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> Session:
        topic = record.get("topic")
        return cls(
            id=str(record["id"]),
            title=str(record.get("title", "")),
            created_at=str(record["created_at"]),
            updated_at=str(record.get("updated_at", record["created_at"])),
            topic=str(topic) if topic else None,
        )


@dataclass(frozen=True)
class Message:
    id: str
    role: Role
    content: str
    created_at: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", parse_role(self.role))
        validate_content(self.content)

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict) -> Message:
        return cls(
            id=str(record["id"]),
            role=parse_role(record["role"]),
            content=str(record["content"]),
            created_at=str(record["created_at"]),
        )

    def as_chat(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class Favorite:
    """A saved conversation, optionally with the summary the coach wrote for it."""

    id: str
    session_id: str
    title: str
    created_at: str
    summary: str | None = None

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> Favorite:
        summary = record.get("summary")
        return cls(
            id=str(record["id"]),
            session_id=str(record["session_id"]),
            title=str(record.get("title", "")),
            created_at=str(record["created_at"]),
            summary=str(summary) if summary else None,
        )
