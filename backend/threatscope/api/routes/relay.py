import json
from typing import AsyncIterator

import httpx
import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from threatscope.api.deps import SettingsDep, UpstreamClientDep
from threatscope.core.errors import ConfigurationError
from threatscope.observability import RELAY_STREAMED_BYTES, RELAY_UPSTREAM_RESPONSES
from threatscope.schemas import ErrorBody

router = APIRouter(prefix="/nim", tags=["relay"])
logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorBody(error=message).model_dump())


def _sse_error(message: str) -> bytes:
    data = {"error": {"message": message, "type": "upstream_stream_error"}}
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n".encode("utf-8")


async def _relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Pipe the upstream body through chunk by chunk."""
    sent = 0
    try:
        async for chunk in upstream.aiter_bytes():
            sent += len(chunk)
            yield chunk
    except httpx.HTTPError as e:
        logger.error("Upstream stream interrupted", error=str(e), bytes_sent=sent)
        yield _sse_error(str(e) or type(e).__name__)
    finally:
        await upstream.aclose()
        RELAY_STREAMED_BYTES.inc(sent)
        logger.info("Relay stream closed", bytes_sent=sent)


@router.post(
    "/v1/chat/completions",
    responses={500: {"model": ErrorBody}},
)
async def relay_chat_completions(
    request: Request,
    settings: SettingsDep,
    upstream_client: UpstreamClientDep,
) -> Response:
    """
    Forward a chat-completion request to the upstream provider with the
    server-held credential and stream the provider's answer back verbatim.
    """
    try:
        body = await request.body()
        json.loads(body)  # only checked for being JSON; forwarded as-is

        api_key = settings.nim_api_key
        if not api_key:
            raise ConfigurationError("Server NIM_API_KEY is not configured")

        upstream_request = upstream_client.build_request(
            "POST",
            settings.UPSTREAM_URL,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
        )
        upstream = await upstream_client.send(upstream_request, stream=True)
    except ConfigurationError as e:
        logger.error("Relay misconfigured", error=e.message)
        return _error_response(500, e.message)
    except Exception as e:
        logger.exception("Relay request failed")
        return _error_response(500, str(e) or "Proxy error")

    RELAY_UPSTREAM_RESPONSES.labels(str(upstream.status_code)).inc()

    if not upstream.is_success:
        try:
            content = await upstream.aread()
        except httpx.HTTPError as e:
            logger.error("Could not read upstream error body", error=str(e))
            return _error_response(500, str(e) or "Proxy error")
        finally:
            await upstream.aclose()
        logger.warning("Upstream returned an error", status=upstream.status_code)
        return Response(
            content=content or upstream.reason_phrase.encode("utf-8"),
            status_code=upstream.status_code,
            media_type=upstream.headers.get("Content-Type"),
        )

    return StreamingResponse(
        _relay_body(upstream),
        status_code=200,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        # The generator is not always finalised when the caller disconnects.
        background=BackgroundTask(upstream.aclose),
    )
