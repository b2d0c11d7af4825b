# models/errors.py
from typing import Optional


class PosTerminalError(Exception):
    """Base class for terminal errors."""


class StoreIOError(PosTerminalError):
    """Local persistence failed. Surfaced to the caller, never retried automatically."""


class NetworkFailure(PosTerminalError):
    """The remote authority could not be reached."""


class RemoteRejected(PosTerminalError):
    """The remote authority answered with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PrintFailure(PosTerminalError):
    """A print request failed. Printing is a one-shot user action."""


class InvalidOrderError(PosTerminalError, ValueError):
    pass


class OrderNotFoundError(InvalidOrderError):
    pass


class SeatClosedError(InvalidOrderError):
    pass
