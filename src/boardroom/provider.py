from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from boardroom.upstream import UpstreamEvent


@runtime_checkable
class TokenSource(Protocol):
    def stream(
        self,
        system_instruction: str,
        messages: list[dict],
        *,
        max_tokens: int | None = None,
    ) -> AsyncIterator[UpstreamEvent]:
        """Lazily yield upstream events for one response.

        May raise a transport failure at any point during iteration.
        """
        ...

    async def complete(
        self,
        system_instruction: str,
        messages: list[dict],
        *,
        max_tokens: int | None = None,
    ) -> str:
        """Non-streaming completion (used for answer judgment)."""
        ...


def create_provider(
    provider_name: str,
    api_key: str,
    *,
    model: str,
    max_tokens: int = 1024,
    temperature: float = 1.0,
) -> TokenSource:
    """Factory: create a TokenSource by provider name."""
    name = provider_name.strip().lower()
    if name == "anthropic":
        from boardroom.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, model=model, max_tokens=max_tokens, temperature=temperature)
    if name == "openai":
        from boardroom.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, model=model, max_tokens=max_tokens, temperature=temperature)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'anthropic', 'openai'")
