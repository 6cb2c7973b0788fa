from __future__ import annotations

from pathlib import Path

from loguru import logger

BASE_COACH_PROMPT = """\
You are a warm, practical parenting coach for grandparents who help look after \
their grandchildren.

Before giving advice, ask two or three short clarifying questions (the child's \
age, when the behaviour happens, what has already been tried) unless the \
conversation already answers them.

Once you have enough context, reply with:
1. A few concrete, numbered steps the grandparent can try today
2. One or two sentences on why those steps work
3. Example phrasing they can say to the child
4. A kind, encouraging closing line

Keep answers short and plain. Support the parents' rules rather than \
overriding them. Do not name or quote specific authors, brands or programmes.

You do not give medical, psychological or legal advice. If a situation sounds \
medical or unsafe, point the grandparent to a licensed professional or local \
emergency services."""

SUMMARY_PROMPT = """\
Write a one-page summary of the coaching conversation below for {audience}.
Use these sections, each with a short heading:
- Situation: what is going on, in two or three sentences
- Key points: the most important ideas from the conversation
- Suggested actions: numbered steps to try next time
- Example phrasing: two or three things to say to the child, word for word
- Encouragement: one warm closing sentence

Keep it practical and under 350 words. Do not add advice that was not \
discussed.

---
CONVERSATION:

"""

DEFAULT_AUDIENCE = "a grandparent"

_CONTEXT_LABELS = (
    ("topic", "Topic"),
    ("age_range", "Age range"),
    ("situation_type", "Situation type"),
    ("attempted", "Already tried"),
    ("urgency", "Urgent"),
    ("user_notes", "Notes"),
)


def load_base_prompt(path: str | None = None) -> str:
    if path:
        prompt_path = Path(path)
        if prompt_path.exists():
            text = prompt_path.read_text(encoding="utf-8").strip()
            if text:
                return text
        logger.warning(f"System prompt file not found or empty: {path}; using built-in prompt")
    return BASE_COACH_PROMPT


def build_coach_system_prompt(base_prompt: str, context: dict | None = None) -> str:
    """Append the supplied coaching context to the base instructions."""
    context = context or {}
    lines: list[str] = []
    for key, label in _CONTEXT_LABELS:
        value = context.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "yes" if value else "no"
        lines.append(f"{label}: {value}")

    prompt = base_prompt
    if lines:
        prompt += "\n\nContext:\n" + "\n".join(lines)

    history = context.get("conversation_history")
    if history:
        prompt += (
            "\n\nEarlier conversations with this grandparent (for continuity only, "
            "do not repeat them back):\n" + history
        )
    return prompt


def format_transcript(messages: list[dict]) -> str:
    parts = []
    for msg in messages:
        role = str(msg.get("role", "unknown"))
        if role == "system":
            continue
        label = "Grandparent" if role == "user" else "Coach"
        parts.append(f"{label}: {msg.get('content', '')}")
    return "\n\n".join(parts)


def build_summary_prompt(transcript: str, audience: str | None = None) -> str:
    return SUMMARY_PROMPT.format(audience=audience or DEFAULT_AUDIENCE) + transcript
