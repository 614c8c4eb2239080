import json
import unittest
from types import SimpleNamespace

from boardroom.upstream import (
    ContentDelta,
    MessageStart,
    MessageStop,
    OtherEvent,
    error_message,
    parse_upstream_event,
)


class ParseUpstreamEventTests(unittest.TestCase):
    def test_text_delta_from_json_string(self) -> None:
        raw = json.dumps({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}})
        self.assertEqual(ContentDelta(text="Hi"), parse_upstream_event(raw))

    def test_text_delta_from_sdk_object(self) -> None:
        raw = SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text="there"))
        self.assertEqual(ContentDelta(text="there"), parse_upstream_event(raw))

    def test_non_text_delta_is_other(self) -> None:
        raw = {"type": "content_block_delta", "delta": {"type": "input_json_delta", "partial_json": "{"}}
        event = parse_upstream_event(raw)
        self.assertIsInstance(event, OtherEvent)
        self.assertEqual("content_block_delta", event.kind)

    def test_message_start_carries_id(self) -> None:
        event = parse_upstream_event({"type": "message_start", "message": {"id": "msg_42"}})
        self.assertEqual(MessageStart(message_id="msg_42"), event)

    def test_message_stop(self) -> None:
        self.assertEqual(MessageStop(), parse_upstream_event(b'{"type": "message_stop"}'))

    def test_malformed_input(self) -> None:
        self.assertEqual("malformed", parse_upstream_event("{not json").kind)
        self.assertEqual("malformed", parse_upstream_event({"delta": {}}).kind)
        self.assertEqual("malformed", parse_upstream_event(None).kind)

    def test_already_parsed_event_passes_through(self) -> None:
        event = ContentDelta(text="x")
        self.assertIs(event, parse_upstream_event(event))


class ErrorMessageTests(unittest.TestCase):
    def test_error_event_message(self) -> None:
        event = parse_upstream_event({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})
        self.assertEqual("Overloaded", error_message(event))

    def test_error_event_without_message(self) -> None:
        self.assertEqual("Unknown error", error_message(parse_upstream_event('{"type": "error"}')))

    def test_non_error_events_have_no_message(self) -> None:
        self.assertIsNone(error_message(ContentDelta(text="x")))
        self.assertIsNone(error_message(OtherEvent(kind="ping")))
