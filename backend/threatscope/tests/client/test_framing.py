from threatscope.client.cancellation import CancellationToken
from threatscope.client.framing import (
    SSELineFramer,
    data_payload,
    extract_delta,
    extract_error,
    extract_finish_reason,
)
from threatscope.core.errors import AbortedByUser

import pytest


class TestSSELineFramer:
    def test_complete_lines_are_emitted(self):
        framer = SSELineFramer()
        assert framer.feed(b"data: a\n\ndata: b\n") == ["data: a", "", "data: b"]
        assert framer.pending == ""

    def test_partial_line_is_carried_over(self):
        framer = SSELineFramer()
        assert framer.feed(b'data: {"choi') == []
        assert framer.feed(b'ces": []}\n') == ['data: {"choices": []}']

    def test_split_multibyte_character(self):
        framer = SSELineFramer()
        encoded = "data: é\n".encode("utf-8")
        cut = encoded.index(b"\xc3") + 1
        assert framer.feed(encoded[:cut]) == []
        assert framer.feed(encoded[cut:]) == ["data: é"]

    def test_crlf_split_between_reads_is_one_terminator(self):
        framer = SSELineFramer()
        assert framer.feed(b"data: a\r") == []
        assert framer.feed(b"\ndata: b\r\n") == ["data: a", "data: b"]

    def test_lone_cr_is_a_terminator(self):
        framer = SSELineFramer()
        assert framer.feed(b"data: a\r") == []
        assert framer.feed(b"data: b\r\n") == ["data: a", "data: b"]

    def test_flush_returns_trailing_line(self):
        framer = SSELineFramer()
        framer.feed(b"data: a\n\ndata: [DONE]")
        assert framer.flush() == ["data: [DONE]"]
        assert framer.flush() == []


class TestFrameHelpers:
    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ('data: {"a": 1}', '{"a": 1}'),
            ('data:{"a": 1}', '{"a": 1}'),
            ("data: [DONE]", "[DONE]"),
            ("event: message", None),
            ("", None),
            (": comment", None),
        ],
    )
    def test_data_payload(self, line, expected):
        assert data_payload(line) == expected

    def test_extract_delta(self):
        frame = {"choices": [{"delta": {"content": "Hi"}, "finish_reason": None}]}
        assert extract_delta(frame) == "Hi"

    @pytest.mark.parametrize(
        "frame",
        [
            {},
            {"choices": []},
            {"choices": [{"delta": {}}]},
            {"choices": [{"delta": {"content": None}}]},
            {"choices": [{"delta": {"content": 3}}]},
            {"choices": "nope"},
            [1, 2],
            "text",
        ],
    )
    def test_extract_delta_missing(self, frame):
        assert extract_delta(frame) is None

    def test_extract_finish_reason(self):
        assert extract_finish_reason({"choices": [{"delta": {}, "finish_reason": "stop"}]}) == "stop"
        assert extract_finish_reason({"choices": [{"delta": {}}]}) is None

    def test_extract_error(self):
        assert extract_error({"error": {"message": "boom", "type": "x"}}) == "boom"
        assert extract_error({"error": "rate limited"}) == "rate limited"
        assert extract_error({"choices": []}) is None


class TestCancellationToken:
    def test_cancel_then_raise(self):
        token = CancellationToken("Chat was stopped by user")
        token.raise_if_cancelled()
        assert token.cancel() is True
        with pytest.raises(AbortedByUser, match="Chat was stopped by user"):
            token.raise_if_cancelled()

    def test_cancel_after_release_is_ignored(self):
        token = CancellationToken()
        token.release()
        assert token.cancel() is False
        assert token.cancelled is False
