from typing import Optional

from threatscope.core.errors import AbortedByUser


class CancellationToken:
    """Cooperative cancellation signal for one stream session.

    Cancelling never interrupts an in-flight read; the read loop checks the
    token between chunk reads and before every buffer update.
    """

    def __init__(self, message: str = "Stream was stopped by user"):
        self._message = message
        self._cancelled = False
        self._released = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def released(self) -> bool:
        return self._released

    def cancel(self, message: Optional[str] = None) -> bool:
        """Request cancellation. Returns False once the session has ended."""
        if self._released:
            return False
        if message:
            self._message = message
        self._cancelled = True
        return True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AbortedByUser(self._message)

    def release(self) -> None:
        self._released = True
