"""Incremental SSE line framing.

Chunks read from the network do not respect line boundaries: a single
``data: ...`` line (or a multi-byte UTF-8 character) may be split across
two reads. ``SSELineFramer`` keeps the undecoded tail and the trailing
partial line between calls and only emits complete lines.
"""

import codecs
import json
import re
from typing import Any, List, Optional

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class SSELineFramer:
    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        """Return the lines completed by ``chunk``, without terminators."""
        text = self._pending + self._decoder.decode(chunk)
        # A trailing CR may be the first half of a CRLF split across reads.
        held_cr = text.endswith("\r")
        if held_cr:
            text = text[:-1]
        *lines, self._pending = _LINE_BREAK.split(text)
        if held_cr:
            self._pending += "\r"
        return lines

    def flush(self) -> List[str]:
        """Return whatever is left once the stream has ended."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        self._decoder.reset()
        return [line for line in _LINE_BREAK.split(text) if line]

    @property
    def pending(self) -> str:
        return self._pending


def data_payload(line: str) -> Optional[str]:
    """Payload of a ``data:`` line, or None for any other line."""
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    if payload.startswith(" "):
        payload = payload[1:]
    return payload


def decode_frame(payload: str) -> Any:
    """Parse a frame payload. Raises ``ValueError`` on malformed JSON."""
    return json.loads(payload)


def _first_choice(frame: Any) -> Optional[dict]:
    if not isinstance(frame, dict):
        return None
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None


def extract_delta(frame: Any) -> Optional[str]:
    """``choices[0].delta.content`` when present and textual."""
    choice = _first_choice(frame)
    if choice is None:
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


def extract_finish_reason(frame: Any) -> Optional[str]:
    choice = _first_choice(frame)
    if choice is None:
        return None
    reason = choice.get("finish_reason")
    return reason if isinstance(reason, str) else None


def extract_error(frame: Any) -> Optional[str]:
    """Message of an in-band error frame (``{"error": ...}``), if any."""
    if not isinstance(frame, dict) or "error" not in frame:
        return None
    error = frame["error"]
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or error)
    return str(error)
