"""Custom exceptions for the scheduling subsystem."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base exception for scheduler failures."""


class ScheduleConfigurationError(SchedulerError):
    """Raised when a repository schedule cannot be evaluated."""

    def __init__(self, message: str, schedule_type: str | None = None, value: str | None = None):
        super().__init__(message)
        self.schedule_type = schedule_type
        self.value = value


class MalformedMessageError(SchedulerError):
    """Raised when a queue payload is not a valid notification message."""

    def __init__(self, message: str, queue_name: str, payload: str | None = None):
        super().__init__(message)
        self.queue_name = queue_name
        self.payload = payload
