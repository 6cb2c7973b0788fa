import anthropic
from loguru import logger

from grandparent_coach.providers.common import fold_system_messages, merge_consecutive_roles


class AnthropicProvider:
    def __init__(self, api_key: str):
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
    ) -> str:
        system_prompt, chat = fold_system_messages(system_prompt, messages)
        chat = merge_consecutive_roles(chat)
        logger.debug(f"API request: model={model}, max_tokens={max_tokens}, messages={len(chat)}")
        response = await self._client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=chat,
        )
        usage = response.usage
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
        )
        return "".join(block.text for block in response.content if block.type == "text")
