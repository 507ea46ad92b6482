"""Exceptions raised by the streaming connection layer."""


class HorizonError(Exception):
    """Base class for all connection errors."""


class NotConnected(HorizonError):
    """A send was attempted with no live channel and connecting failed."""


class TransportError(HorizonError):
    """Channel-level I/O failure (open, send, receive, ping)."""


class DecodeError(HorizonError):
    """An inbound payload could not be decoded. The frame is dropped."""


class EncodeError(HorizonError):
    """An outbound payload could not be serialized."""


class MaxAttemptsExceeded(HorizonError):
    """
    The reconnection budget is spent.

    Only logged, never raised out of a background task; the controller parks
    in DISCONNECTED until connect() or a foreground transition.
    """

    def __init__(self, max_attempts: int):
        super().__init__(f"gave up after {max_attempts} reconnection attempts")
        self.max_attempts = max_attempts
