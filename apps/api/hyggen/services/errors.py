"""Domain errors raised by room operations.

All of them are recovered by the gateway: the offending operation is dropped without a broadcast.
"""
from __future__ import annotations


class RoomError(RuntimeError):
    """Base class for rejected room operations."""


class InvalidNameError(RoomError):
    """Raised when a join carries an empty display name."""


class AlreadyJoinedError(RoomError):
    """Raised when a session tries to join twice."""


class SeatUnavailableError(RoomError):
    """Raised when a seat claim cannot be granted."""


class NotJoinedError(RoomError):
    """Raised when a join-gated operation comes from a session that has not joined."""


class InvariantViolation(AssertionError):
    """Raised when seat and participant records disagree."""
