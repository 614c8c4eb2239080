from collections.abc import AsyncIterator

import openai
from loguru import logger
from tenacity import retry

from boardroom.providers.common import default_retry_kwargs
from boardroom.upstream import ContentDelta, MessageStart, MessageStop, UpstreamEvent

_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
)


def _to_openai_messages(system_instruction: str, messages: list[dict]) -> list[dict]:
    """Prepend the system instruction as a system-role message."""
    out: list[dict] = []
    if system_instruction:
        out.append({"role": "system", "content": system_instruction})
    for msg in messages:
        content = msg.get("content", "")
        out.append({"role": msg["role"], "content": content if isinstance(content, str) else str(content)})
    return out


class OpenAIProvider:
    def __init__(self, api_key: str, *, model: str, max_tokens: int = 1024, temperature: float = 1.0):
        self._client = openai.AsyncOpenAI(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def _open_stream(self, system_instruction: str, messages: list[dict], max_tokens: int):
        oai_messages = _to_openai_messages(system_instruction, messages)
        logger.debug(
            f"API stream request: model={self._model}, max_tokens={max_tokens}, "
            f"messages={len(oai_messages)}"
        )
        return await self._client.chat.completions.create(
            model=self._model,
            max_tokens=max_tokens,
            temperature=self._temperature,
            messages=oai_messages,
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
        started = False
        finish_reason: str | None = None
        async with raw_stream:
            async for chunk in raw_stream:
                if not started:
                    started = True
                    yield MessageStart(message_id=getattr(chunk, "id", None))

                choice = chunk.choices[0] if chunk.choices else None
                if choice is None:
                    continue
                if choice.delta is not None and choice.delta.content:
                    yield ContentDelta(text=choice.delta.content)
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                    break

        logger.debug(f"API stream finished: finish_reason={finish_reason}")
        if finish_reason is not None:
            yield MessageStop()

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def complete(
        self,
        system_instruction: str,
        messages: list[dict],
        *,
        max_tokens: int | None = None,
    ) -> str:
        """Non-streaming message creation (used for answer judgment)."""
        oai_messages = _to_openai_messages(system_instruction, messages)
        logger.debug(f"API request: model={self._model}, messages={len(oai_messages)}")
        response = await self._client.chat.completions.create(
            model=self._model,
            max_tokens=max_tokens or self._max_tokens,
            temperature=self._temperature,
            messages=oai_messages,
        )
        text = response.choices[0].message.content or ""
        logger.debug(f"API response: len={len(text)}")
        return text
