"""Exception hierarchy for the dialer.

Commands issued in a state where they do not apply are no-ops, not errors,
so the hierarchy stays small.
"""

from typing import Optional


class DialerError(Exception):
    """Base exception for all dialer errors."""

    code: str = "DIALER_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EmptyQueue(DialerError, IndexError):
    """pop_front() on an empty call queue."""

    code = "EMPTY_QUEUE"

    def __init__(self, message: str = "call queue is empty"):
        super().__init__(message)


class InitiationError(DialerError):
    """The call initiator could not begin dialing a number."""

    code = "INITIATION_ERROR"

    def __init__(self, message: str, number: str = "", details: Optional[dict] = None):
        super().__init__(message, details)
        self.number = number
