from __future__ import annotations

from grandparent_coach.store.models import MAX_TITLE_CHARS

GREETING = (
    "Hi! I'm here to help you with your grandparenting questions. "
    "What's going on with your grandchild today?"
)

DEFAULT_TITLE = "New conversation"
FALLBACK_TITLE = "Conversation"
TITLE_WORDS = 6

_TOPIC_PROMPTS: dict[str, str] = {
    "tantrums": (
        "Let's talk about tantrums. How old is your grandchild, and what usually "
        "sets the meltdowns off?"
    ),
    "mealtime": (
        "Mealtimes can be tricky. How old is your grandchild, and is the struggle "
        "about trying new foods, sitting at the table, or something else?"
    ),
    "bedtime": (
        "Bedtime battles are common. How old is your grandchild, and where does "
        "bedtime usually fall apart: getting ready, lights out, or staying in bed?"
    ),
    "screen_time": (
        "Screens are a big one. How old is your grandchild, and what are the parents' "
        "rules about screen time at their house?"
    ),
}


def clarifying_prompt_for(topic: str | None) -> str | None:
    """Opening question for a known topic; unknown topics get none."""
    if not topic:
        return None
    key = topic.strip().lower().replace("-", "_").replace(" ", "_")
    return _TOPIC_PROMPTS.get(key)


def known_topics() -> list[str]:
    return sorted(_TOPIC_PROMPTS)


def generate_title(text: str, fallback: str = FALLBACK_TITLE) -> str:
    """First few words of ``text``, ellipsized when cut, never longer than a stored title."""
    words = text.split()
    if not words:
        return fallback
    title = " ".join(words[:TITLE_WORDS])
    truncated = len(words) > TITLE_WORDS
    if len(title) > MAX_TITLE_CHARS - 1:
        title = title[: MAX_TITLE_CHARS - 1].rstrip()
        truncated = True
    return title + ("…" if truncated else "")
