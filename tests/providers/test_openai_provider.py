import asyncio
import unittest
from types import SimpleNamespace

from boardroom.providers.openai_provider import OpenAIProvider, _to_openai_messages
from boardroom.upstream import ContentDelta, MessageStart, MessageStop


def _chunk(content: str | None = None, finish_reason: str | None = None, chunk_id: str = "chatcmpl-1"):
    return SimpleNamespace(
        id=chunk_id,
        choices=[SimpleNamespace(delta=SimpleNamespace(content=content), finish_reason=finish_reason)],
    )


class _FakeStream:
    def __init__(self, chunks: list[object]):
        self._chunks = chunks

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def __aiter__(self):
        self._iter = iter(self._chunks)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class _FakeCompletions:
    def __init__(self, stream=None, create_response=None):
        self._stream = stream
        self._create_response = create_response
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return self._stream if kwargs.get("stream") else self._create_response


def _make_provider(stream=None, create_response=None) -> OpenAIProvider:
    provider = OpenAIProvider.__new__(OpenAIProvider)
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(stream, create_response)))
    provider._model = "gpt-test"
    provider._max_tokens = 100
    provider._temperature = 0.5
    return provider


async def _collect(events) -> list:
    return [e async for e in events]


class ToOpenAIMessagesTests(unittest.TestCase):
    def test_system_instruction_becomes_system_message(self) -> None:
        result = _to_openai_messages("You are the Strategist.", [{"role": "user", "content": "hello"}])
        self.assertEqual(
            [
                {"role": "system", "content": "You are the Strategist."},
                {"role": "user", "content": "hello"},
            ],
            result,
        )

    def test_empty_system_instruction_is_omitted(self) -> None:
        result = _to_openai_messages("", [{"role": "assistant", "content": "hi"}])
        self.assertEqual([{"role": "assistant", "content": "hi"}], result)


class OpenAIProviderTests(unittest.TestCase):
    def test_stream_maps_chunks_to_events(self) -> None:
        provider = _make_provider(
            stream=_FakeStream([_chunk("Hel"), _chunk("lo"), _chunk(None, "stop"), _chunk("ignored")])
        )

        events = asyncio.run(_collect(provider.stream("sys", [{"role": "user", "content": "hi"}])))

        self.assertEqual(
            [MessageStart("chatcmpl-1"), ContentDelta("Hel"), ContentDelta("lo"), MessageStop()],
            events,
        )
        call = provider._client.chat.completions.calls[0]
        self.assertEqual("system", call["messages"][0]["role"])
        self.assertEqual(100, call["max_tokens"])

    def test_stream_without_finish_reason_has_no_stop(self) -> None:
        provider = _make_provider(stream=_FakeStream([_chunk("partial")]))
        events = asyncio.run(_collect(provider.stream("", [])))
        self.assertEqual([MessageStart("chatcmpl-1"), ContentDelta("partial")], events)

    def test_complete_returns_message_text(self) -> None:
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"isSpecific": false}'))],
        )
        provider = _make_provider(create_response=response)

        text = asyncio.run(provider.complete("", [{"role": "user", "content": "judge"}], max_tokens=16))

        self.assertEqual('{"isSpecific": false}', text)
        self.assertEqual(16, provider._client.chat.completions.calls[0]["max_tokens"])
