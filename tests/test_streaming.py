import asyncio
import json
import unittest
from types import SimpleNamespace

from boardroom.streaming import (
    DoneChunk,
    ErrorChunk,
    MetadataChunk,
    StartChunk,
    TextChunk,
    UnknownChunk,
    format_sse_event,
    normalize_events,
    parse_stream_chunk,
    sse_stream,
    stream_turn,
)
from tests.fakes import FakeUpstream, message_start, message_stop, reply_events, text_delta


async def _collect(chunks) -> list:
    return [chunk async for chunk in chunks]


def _types(chunks: list) -> list[str]:
    return [c.type for c in chunks]


class NormalizeEventsTests(unittest.TestCase):
    def test_done_carries_concatenated_text(self) -> None:
        upstream = FakeUpstream(reply_events("Hel", "lo", ", world"))
        chunks = asyncio.run(_collect(normalize_events(upstream)))

        self.assertEqual(["start", "text", "text", "text", "done"], _types(chunks))
        self.assertEqual("msg_1", chunks[0].message_id)
        self.assertEqual("Hello, world", chunks[-1].full_text)
        self.assertTrue(upstream.closed)

    def test_natural_end_without_stop_still_completes(self) -> None:
        upstream = FakeUpstream([text_delta("partial")])
        chunks = asyncio.run(_collect(normalize_events(upstream)))
        self.assertEqual([TextChunk("partial"), DoneChunk("partial")], chunks)

    def test_empty_stream_completes_with_empty_text(self) -> None:
        chunks = asyncio.run(_collect(normalize_events(FakeUpstream([]))))
        self.assertEqual([DoneChunk("")], chunks)

    def test_transport_failure_mid_stream_yields_single_error(self) -> None:
        upstream = FakeUpstream(
            [message_start(), text_delta("a"), text_delta("b"), message_stop()],
            fail_after=3,
            error=ConnectionError("socket closed"),
        )
        chunks = asyncio.run(_collect(normalize_events(upstream)))

        self.assertEqual(["start", "text", "text", "error"], _types(chunks))
        self.assertEqual("socket closed", chunks[-1].error)
        self.assertTrue(upstream.closed)

    def test_error_without_message_uses_exception_name(self) -> None:
        upstream = FakeUpstream([], fail_after=0, error=TimeoutError())
        chunks = asyncio.run(_collect(normalize_events(upstream)))
        self.assertEqual([ErrorChunk("TimeoutError")], chunks)

    def test_upstream_error_event_ends_stream(self) -> None:
        upstream = FakeUpstream(
            [
                text_delta("a"),
                {"type": "error", "error": {"message": "Overloaded"}},
                text_delta("never"),
            ]
        )
        chunks = asyncio.run(_collect(normalize_events(upstream)))
        self.assertEqual([TextChunk("a"), ErrorChunk("Overloaded")], chunks)

    def test_unrecognized_events_are_forwarded(self) -> None:
        upstream = FakeUpstream([SimpleNamespace(type="message_delta"), text_delta("x"), message_stop()])
        chunks = asyncio.run(_collect(normalize_events(upstream)))

        self.assertEqual(["unknown", "text", "done"], _types(chunks))
        self.assertEqual("message_delta", chunks[0].kind)

    def test_only_first_start_is_emitted(self) -> None:
        upstream = FakeUpstream([message_start("a"), message_start("b"), message_stop()])
        chunks = asyncio.run(_collect(normalize_events(upstream)))
        self.assertEqual(1, sum(1 for c in chunks if isinstance(c, StartChunk)))
        self.assertIsInstance(chunks[-1], DoneChunk)


class StreamTurnTests(unittest.TestCase):
    def test_metadata_precedes_upstream_chunks(self) -> None:
        persona = {"id": "strategist", "name": "The Strategist"}
        chunks = asyncio.run(_collect(stream_turn(FakeUpstream(reply_events("ok")), persona=persona)))

        self.assertEqual(MetadataChunk(persona=persona), chunks[0])
        self.assertEqual(["metadata", "start", "text", "done"], _types(chunks))

    def test_on_complete_runs_once_before_done(self) -> None:
        seen: list[str] = []

        async def scenario() -> None:
            async for chunk in stream_turn(FakeUpstream(reply_events("one ", "two")), on_complete=seen.append):
                if isinstance(chunk, DoneChunk):
                    self.assertEqual(["one two"], seen)

        asyncio.run(scenario())
        self.assertEqual(["one two"], seen)

    def test_failed_stream_never_completes(self) -> None:
        seen: list[str] = []
        upstream = FakeUpstream(reply_events("a", "b"), fail_after=3)
        chunks = asyncio.run(_collect(stream_turn(upstream, on_complete=seen.append)))

        self.assertIsInstance(chunks[-1], ErrorChunk)
        self.assertEqual([], seen)

    def test_completion_failure_still_delivers_done(self) -> None:
        def explode(full_text: str) -> None:
            raise RuntimeError("disk full")

        chunks = asyncio.run(_collect(stream_turn(FakeUpstream(reply_events("hi")), on_complete=explode)))
        self.assertEqual(DoneChunk("hi"), chunks[-1])

    def test_abandoning_the_stream_releases_upstream(self) -> None:
        seen: list[str] = []
        upstream = FakeUpstream(reply_events("a", "b", "c"))

        async def scenario() -> None:
            chunks = stream_turn(upstream, persona={"id": "x"}, on_complete=seen.append)
            await anext(chunks)
            await anext(chunks)
            await anext(chunks)
            await chunks.aclose()

        asyncio.run(scenario())
        self.assertTrue(upstream.closed)
        self.assertEqual([], seen)

    def test_upstream_is_released_before_terminal_chunk(self) -> None:
        upstream = FakeUpstream(reply_events("a", "b"))
        released: list[bool] = []

        async def scenario() -> None:
            chunks = stream_turn(upstream, persona={"id": "x"}, on_complete=lambda text: released.append(upstream.closed))
            while True:
                chunk = await anext(chunks)
                if isinstance(chunk, DoneChunk):
                    break
            self.assertTrue(upstream.closed)

        asyncio.run(scenario())
        self.assertEqual([True], released)

    def test_abandoning_after_metadata_releases_upstream(self) -> None:
        upstream = FakeUpstream(reply_events("a"))

        async def scenario() -> None:
            chunks = stream_turn(upstream, persona={"id": "x"})
            self.assertIsInstance(await anext(chunks), MetadataChunk)
            await chunks.aclose()

        asyncio.run(scenario())
        self.assertTrue(upstream.closed)


class ParseStreamChunkTests(unittest.TestCase):
    def test_maps_single_events(self) -> None:
        self.assertEqual(TextChunk("x"), parse_stream_chunk(text_delta("x")))
        self.assertEqual(StartChunk("m"), parse_stream_chunk(message_start("m")))
        self.assertEqual(DoneChunk(""), parse_stream_chunk(message_stop()))
        self.assertEqual(ErrorChunk("bad"), parse_stream_chunk({"type": "error", "error": {"message": "bad"}}))
        self.assertIsInstance(parse_stream_chunk("garbage"), UnknownChunk)


class SseTests(unittest.TestCase):
    def test_format_without_token(self) -> None:
        block = format_sse_event("text", {"type": "text", "text": "hé"})
        self.assertEqual('event: text\ndata: {"type":"text","text":"hé"}\n\n', block)

    def test_format_with_token(self) -> None:
        block = format_sse_event("done", {"type": "done", "fullText": "x"}, "7")
        self.assertTrue(block.startswith("id: 7\nevent: done\n"))

    def test_stream_numbers_blocks_and_stops_after_terminal(self) -> None:
        async def chunks():
            yield StartChunk("m")
            yield TextChunk("a")
            yield DoneChunk("a")
            yield TextChunk("after done")

        blocks = asyncio.run(_collect(sse_stream(chunks(), first_token=5)))

        self.assertEqual(3, len(blocks))
        self.assertEqual(["id: 5", "id: 6", "id: 7"], [b.split("\n", 1)[0] for b in blocks])
        payload = json.loads(blocks[-1].split("data: ", 1)[1])
        self.assertEqual({"type": "done", "fullText": "a"}, payload)

    def test_failing_source_ends_with_error_block(self) -> None:
        async def chunks():
            yield TextChunk("a")
            raise RuntimeError("boom")

        blocks = asyncio.run(_collect(sse_stream(chunks())))

        self.assertEqual(2, len(blocks))
        self.assertTrue(blocks[-1].startswith("event: error\n"))
        self.assertEqual({"type": "error", "error": "boom"}, json.loads(blocks[-1].split("data: ", 1)[1]))
