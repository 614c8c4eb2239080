import asyncio
import unittest
from types import SimpleNamespace

from boardroom.providers.anthropic_provider import AnthropicProvider
from boardroom.upstream import ContentDelta, MessageStart, MessageStop


class _FakeStream:
    def __init__(self, events: list[object]):
        self._events = events
        self.exited = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True
        return False

    def __aiter__(self):
        self._iter = iter(self._events)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class _FakeMessages:
    def __init__(self, stream=None, create_response=None):
        self._stream = stream
        self._create_response = create_response
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return self._stream if kwargs.get("stream") else self._create_response


class _FakeClient:
    def __init__(self, stream=None, create_response=None):
        self.messages = _FakeMessages(stream, create_response)


def _make_provider(stream=None, create_response=None) -> AnthropicProvider:
    provider = AnthropicProvider.__new__(AnthropicProvider)
    provider._client = _FakeClient(stream, create_response)
    provider._model = "m"
    provider._max_tokens = 100
    provider._temperature = 0.5
    return provider


async def _collect(events) -> list:
    return [e async for e in events]


class AnthropicProviderTests(unittest.TestCase):
    def test_stream_skips_lifecycle_events(self) -> None:
        fake_stream = _FakeStream(
            [
                SimpleNamespace(type="message_start", message=SimpleNamespace(id="msg_1")),
                SimpleNamespace(type="content_block_start", index=0),
                SimpleNamespace(type="ping"),
                SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="Hello")),
                SimpleNamespace(type="content_block_stop", index=0),
                SimpleNamespace(type="message_delta", delta=SimpleNamespace(stop_reason="end_turn")),
                SimpleNamespace(type="message_stop"),
            ]
        )
        provider = _make_provider(stream=fake_stream)

        events = asyncio.run(_collect(provider.stream("sys", [{"role": "user", "content": "hi"}], max_tokens=42)))

        self.assertEqual([MessageStart(message_id="msg_1"), ContentDelta(text="Hello"), MessageStop()], events)
        self.assertTrue(fake_stream.exited)
        call = provider._client.messages.calls[0]
        self.assertEqual(42, call["max_tokens"])
        self.assertEqual("sys", call["system"])
        self.assertTrue(call["stream"])

    def test_stream_uses_default_max_tokens(self) -> None:
        provider = _make_provider(stream=_FakeStream([]))
        asyncio.run(_collect(provider.stream("sys", [])))
        self.assertEqual(100, provider._client.messages.calls[0]["max_tokens"])

    def test_complete_joins_text_blocks(self) -> None:
        response = SimpleNamespace(
            usage=SimpleNamespace(input_tokens=3, output_tokens=2),
            content=[
                SimpleNamespace(type="text", text='{"isSpecific": '),
                SimpleNamespace(type="text", text="true}"),
            ],
        )
        provider = _make_provider(create_response=response)

        text = asyncio.run(provider.complete("", [{"role": "user", "content": "judge"}], max_tokens=16))

        self.assertEqual('{"isSpecific": true}', text)
        call = provider._client.messages.calls[0]
        self.assertNotIn("system", call)
        self.assertEqual(16, call["max_tokens"])
        self.assertNotIn("stream", call)
