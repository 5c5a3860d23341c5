from typing import Any, Iterable, Mapping, Optional

import httpx
import structlog

from threatscope.client.session import (
    SessionResult,
    SkippedFrameCallback,
    StreamSession,
    UpdateCallback,
)
from threatscope.schemas import ChatMessage, CompletionRequest

logger = structlog.get_logger()

DEFAULT_RELAY_PATH = "/api/nim/v1/chat/completions"
DEFAULT_MODEL = "meta/llama-3.1-8b-instruct"


class RelayClient:
    """Consumer side of the chat-completion relay.

    Construct one per caller and pass it to whatever needs it. At most one
    stream session is active at a time; starting a new one stops the
    previous one.
    """

    def __init__(
        self,
        base_url: str,
        *,
        relay_path: str = DEFAULT_RELAY_PATH,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        idle_timeout: float = 60.0,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.relay_path = relay_path
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.idle_timeout = idle_timeout
        # The read timeout bounds the idle time between two chunks on the wire.
        self._http = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=httpx.Timeout(idle_timeout, connect=connect_timeout),
        )
        self._active: Optional[StreamSession] = None

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.stop()
        await self._http.aclose()

    @property
    def active_session(self) -> Optional[StreamSession]:
        if self._active is not None and self._active.done:
            self._active = None
        return self._active

    def build_request(
        self,
        messages: Iterable[ChatMessage | Mapping[str, str]],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> CompletionRequest:
        return CompletionRequest(
            model=model or self.model,
            messages=tuple(ChatMessage.model_validate(m) for m in messages),
            stream=True,
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens if max_tokens is None else max_tokens,
        )

    def start(
        self,
        request: CompletionRequest,
        *,
        label: str = "Stream",
        on_update: Optional[UpdateCallback] = None,
        on_skipped_frame: Optional[SkippedFrameCallback] = None,
    ) -> StreamSession:
        """Open the relay stream and start reading it on a background task."""
        previous = self.active_session
        if previous is not None:
            logger.info("stream_session_superseded", session_id=previous.id)
            previous.cancel()

        session = StreamSession(
            self._http,
            self.relay_path,
            request,
            label=label,
            on_update=on_update,
            on_skipped_frame=on_skipped_frame,
            idle_timeout=self.idle_timeout,
        )
        self._active = session
        return session.begin()

    async def stream(self, request: CompletionRequest, **kwargs: Any) -> SessionResult:
        return await self.start(request, **kwargs).wait()

    def stop(self) -> bool:
        """Cancel the active session, if any."""
        session = self.active_session
        return session.cancel() if session is not None else False
