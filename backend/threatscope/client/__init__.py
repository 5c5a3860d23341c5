from threatscope.client.cancellation import CancellationToken
from threatscope.client.framing import SSELineFramer, extract_delta
from threatscope.client.relay_client import RelayClient
from threatscope.client.session import SessionResult, SessionState, StreamSession

__all__ = [
    "CancellationToken",
    "RelayClient",
    "SSELineFramer",
    "SessionResult",
    "SessionState",
    "StreamSession",
    "extract_delta",
]
