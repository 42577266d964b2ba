"""Error types raised by the scheduler, the store and the study session.

Every error is scoped to the single request that raised it; nothing here is
fatal to the process.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for errors surfaced to callers of the scheduler."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SchedulerError, ValueError):
    """Bad input: quality out of range, unknown skill, missing identifier."""

    status_code = 400


class NotFoundError(SchedulerError, LookupError):
    """A referenced lesson or vocabulary item does not exist."""

    status_code = 404


class StorageError(SchedulerError):
    """The record store failed (locked, disk I/O, connection loss)."""

    status_code = 503


class SessionStateError(SchedulerError):
    """A study session was asked for a transition its current state forbids."""

    status_code = 409
