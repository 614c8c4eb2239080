from collections.abc import AsyncIterator

import anthropic
from loguru import logger
from tenacity import retry

from boardroom.providers.common import default_retry_kwargs
from boardroom.upstream import UpstreamEvent, parse_upstream_event

# Block/usage bookkeeping carries no text for the client.
_LIFECYCLE_EVENTS = {"content_block_start", "content_block_stop", "message_delta", "ping"}

_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
)


class AnthropicProvider:
    def __init__(self, api_key: str, *, model: str, max_tokens: int = 1024, temperature: float = 1.0):
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def _open_stream(self, system_instruction: str, messages: list[dict], max_tokens: int):
        logger.debug(
            f"API stream request: model={self._model}, max_tokens={max_tokens}, "
            f"messages={len(messages)}"
        )
        return await self._client.messages.create(
            model=self._model,
            max_tokens=max_tokens,
            temperature=self._temperature,
            system=system_instruction,
            messages=messages,
            stream=True,
        )

    async def stream(
        self,
        system_instruction: str,
        messages: list[dict],
        *,
        max_tokens: int | None = None,
    ) -> AsyncIterator[UpstreamEvent]:
        raw_stream = await self._open_stream(system_instruction, messages, max_tokens or self._max_tokens)
        async with raw_stream:
            async for raw_event in raw_stream:
                if getattr(raw_event, "type", None) in _LIFECYCLE_EVENTS:
                    continue
                yield parse_upstream_event(raw_event)

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def complete(
        self,
        system_instruction: str,
        messages: list[dict],
        *,
        max_tokens: int | None = None,
    ) -> str:
        """Non-streaming message creation (used for answer judgment)."""
        logger.debug(f"API request: model={self._model}, messages={len(messages)}")
        kwargs: dict = dict(
            model=self._model,
            max_tokens=max_tokens or self._max_tokens,
            temperature=self._temperature,
            messages=messages,
        )
        if system_instruction:
            kwargs["system"] = system_instruction
        response = await self._client.messages.create(**kwargs)
        usage = response.usage
        logger.debug(
            f"API response: input_tokens={usage.input_tokens}, "
            f"output_tokens={usage.output_tokens}"
        )
        return "".join(block.text for block in response.content if block.type == "text")
