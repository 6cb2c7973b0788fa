from typing import Protocol, runtime_checkable


@runtime_checkable
class ModelProvider(Protocol):
    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
    ) -> str:
        """Single-shot chat completion. Returns the completion text.

        ``messages`` is an ordered list of ``{"role", "content"}`` dicts with
        string content. Provider failures propagate to the caller unchanged.
        """
        ...


def create_provider(provider_name: str, api_key: str, *, base_url: str | None = None) -> ModelProvider:
    """Factory: create a ModelProvider by name."""
    name = provider_name.strip().lower()
    if name == "openai":
        from grandparent_coach.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, base_url=base_url)
    if name == "anthropic":
        from grandparent_coach.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'openai', 'anthropic'")
