import asyncio
import contextlib
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import httpx
import structlog

from threatscope.client.cancellation import CancellationToken
from threatscope.client.framing import (
    DONE_SENTINEL,
    SSELineFramer,
    data_payload,
    decode_frame,
    extract_delta,
    extract_error,
    extract_finish_reason,
)
from threatscope.core.errors import (
    AbortedByUser,
    FrameDecodeError,
    RelayError,
    TransportError,
    UpstreamError,
)
from threatscope.schemas import CompletionRequest

logger = structlog.get_logger()

# Observers may be plain callables or coroutine functions.
UpdateCallback = Callable[[str], Any]
SkippedFrameCallback = Callable[[FrameDecodeError], Any]


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {SessionState.COMPLETED, SessionState.STOPPED, SessionState.FAILED}
)


@dataclass(frozen=True)
class SessionResult:
    session_id: str
    state: SessionState
    text: str
    error: Optional[RelayError] = None
    finish_reason: Optional[str] = None
    skipped_frames: int = 0

    @property
    def message(self) -> Optional[str]:
        """Human-readable reason for a stopped or failed session."""
        return self.error.message if self.error else None


class StreamSession:
    """One in-flight completion request and its accumulated text.

    The text buffer is append-only and owned by the session; observers get
    the whole buffer after every delta. Errors end the session in a terminal
    state instead of propagating out of ``wait()``.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        request: CompletionRequest,
        *,
        label: str = "Stream",
        on_update: Optional[UpdateCallback] = None,
        on_skipped_frame: Optional[SkippedFrameCallback] = None,
        idle_timeout: Optional[float] = None,
    ):
        self.id = uuid.uuid4().hex
        self.request = request
        self.state = SessionState.IDLE
        self.error: Optional[RelayError] = None
        self.finish_reason: Optional[str] = None
        self.skipped_frames = 0
        self._http = http_client
        self._url = url
        self._on_update = on_update
        self._on_skipped_frame = on_skipped_frame
        self._idle_timeout = idle_timeout
        self._token = CancellationToken(f"{label} was stopped by user")
        self._text = ""
        self._task: Optional[asyncio.Task] = None
        self._log = logger.bind(session_id=self.id, model=request.model)

    @property
    def text(self) -> str:
        return self._text

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def begin(self) -> "StreamSession":
        """Schedule ``run()`` on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self.run())
        return self

    def cancel(self) -> bool:
        return self._token.cancel()

    async def wait(self) -> SessionResult:
        if self._task is None:
            return await self.run()
        return await self._task

    def result(self) -> SessionResult:
        return SessionResult(
            session_id=self.id,
            state=self.state,
            text=self._text,
            error=self.error,
            finish_reason=self.finish_reason,
            skipped_frames=self.skipped_frames,
        )

    async def run(self) -> SessionResult:
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"session {self.id} was already started")
        try:
            await self._execute()
        except AbortedByUser as e:
            self._finish(SessionState.STOPPED, e)
        except (UpstreamError, TransportError) as e:
            self._finish(SessionState.FAILED, e)
        except asyncio.CancelledError:
            self._token.cancel()
            self._finish(SessionState.STOPPED, AbortedByUser())
            raise
        else:
            self._finish(SessionState.COMPLETED)
        finally:
            self._token.release()
        return self.result()

    async def _execute(self) -> None:
        self._token.raise_if_cancelled()
        self._transition(SessionState.REQUESTING)
        payload = self.request.model_dump(mode="json")
        try:
            async with self._http.stream("POST", self._url, json=payload) as response:
                self._token.raise_if_cancelled()
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise UpstreamError(
                        response.status_code,
                        _upstream_message(response, body),
                        body,
                    )
                self._transition(SessionState.STREAMING)
                await self._consume(response)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

    async def _consume(self, response: httpx.Response) -> None:
        framer = SSELineFramer()
        async with contextlib.aclosing(response.aiter_bytes()) as chunks:
            while True:
                try:
                    async with asyncio.timeout(self._idle_timeout):
                        chunk = await anext(chunks)
                except StopAsyncIteration:
                    break
                except TimeoutError as e:
                    raise TransportError(
                        f"No data received for {self._idle_timeout:g} seconds"
                    ) from e
                for line in framer.feed(chunk):
                    if await self._handle_line(line):
                        return
                self._token.raise_if_cancelled()
        self._token.raise_if_cancelled()
        for line in framer.flush():
            if await self._handle_line(line):
                return

    async def _handle_line(self, line: str) -> bool:
        """Apply one line to the buffer. Returns True on the ``[DONE]`` frame."""
        self._token.raise_if_cancelled()
        payload = data_payload(line)
        if payload is None:
            return False
        if payload.strip() == DONE_SENTINEL:
            return True
        try:
            frame = decode_frame(payload)
        except ValueError as e:
            self.skipped_frames += 1
            self._log.debug("sse_frame_skipped", reason=str(e))
            await self._notify(self._on_skipped_frame, FrameDecodeError(payload, str(e)))
            return False

        error = extract_error(frame)
        if error is not None:
            raise TransportError(f"Stream interrupted: {error}")

        delta = extract_delta(frame)
        if delta:
            self._text += delta
            await self._notify(self._on_update, self._text)
        finish_reason = extract_finish_reason(frame)
        if finish_reason:
            self.finish_reason = finish_reason
        return False

    async def _notify(self, callback: Optional[Callable[[Any], Any]], value: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(value)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            self._log.exception("stream_observer_failed")

    def _transition(self, state: SessionState) -> None:
        self._log.debug("stream_session_state", previous=self.state.value, state=state.value)
        self.state = state

    def _finish(self, state: SessionState, error: Optional[RelayError] = None) -> None:
        self._transition(state)
        self.error = error
        if state is SessionState.FAILED:
            self._log.warning("stream_session_failed", error=error.message if error else None)
        else:
            self._log.info(
                "stream_session_finished",
                state=state.value,
                chars=len(self._text),
                skipped_frames=self.skipped_frames,
            )


def _upstream_message(response: httpx.Response, body: str) -> str:
    message = f"NIM API error: {response.status_code} {response.reason_phrase}".rstrip()
    detail = body.strip()
    if detail:
        message = f"{message} - {detail[:200]}"
    return message
