import openai
from loguru import logger

from grandparent_coach.providers.common import fold_system_messages


def _to_openai_messages(system_prompt: str, messages: list[dict]) -> list[dict]:
    """Convert internal messages to OpenAI chat format with a leading system turn."""
    system_prompt, chat = fold_system_messages(system_prompt, messages)
    out: list[dict] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    out.extend(chat)
    return out


class OpenAIProvider:
    """Any OpenAI-compatible chat completions endpoint."""

    def __init__(self, api_key: str, *, base_url: str | None = None):
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
    ) -> str:
        oai_messages = _to_openai_messages(system_prompt, messages)
        logger.debug(f"API request: model={model}, max_tokens={max_tokens}, messages={len(oai_messages)}")
        response = await self._client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=oai_messages,
        )
        choice = response.choices[0] if response.choices else None
        text = (choice.message.content if choice is not None else None) or ""
        logger.debug(f"API response: finish_reason={getattr(choice, 'finish_reason', None)}, len={len(text)}")
        return text
