"""
Tracing Context - Thread-safe context management for distributed tracing.

This module provides a centralized way to carry scheduling context across
Celery tasks, scheduler ticks and queue messages. It uses Python's contextvars
so fan-out threads and concurrent tasks never see each other's values.

Usage:
    # Set context when a repository or a session is being handled
    TracingContext.set(
        organization="contoso",
        repository_id="repo-1",
        session_id="2f1c...",
    )

    # Get context (automatically added to JSONFormatter logs)
    ctx = TracingContext.get()

    # Clear context at the end
    TracingContext.clear()
"""

import uuid
from contextvars import ContextVar
from typing import Dict

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_organization: ContextVar[str] = ContextVar("organization", default="")
_repository_id: ContextVar[str] = ContextVar("repository_id", default="")
_session_id: ContextVar[str] = ContextVar("session_id", default="")
_task_name: ContextVar[str] = ContextVar("task_name", default="")


class TracingContext:
    """Thread-safe tracing context for distributed tracing."""

    @staticmethod
    def set(
        correlation_id: str = "",
        organization: str = "",
        repository_id: str = "",
        session_id: str = "",
        task_name: str = "",
    ) -> None:
        """Set tracing context for current execution."""
        if correlation_id:
            _correlation_id.set(correlation_id)
        if organization:
            _organization.set(organization)
        if repository_id:
            _repository_id.set(repository_id)
        if session_id:
            _session_id.set(session_id)
        if task_name:
            _task_name.set(task_name)

    @staticmethod
    def get() -> Dict[str, str]:
        """Get current tracing context as dict."""
        return {
            "correlation_id": _correlation_id.get(),
            "organization": _organization.get(),
            "repository_id": _repository_id.get(),
            "session_id": _session_id.get(),
            "task_name": _task_name.get(),
        }

    @staticmethod
    def get_or_create_correlation_id() -> str:
        """Get current correlation ID or create a new one."""
        corr_id = _correlation_id.get()
        if not corr_id:
            corr_id = str(uuid.uuid4())
            _correlation_id.set(corr_id)
        return corr_id

    @staticmethod
    def get_log_prefix() -> str:
        """Get a formatted prefix for manual logging."""
        corr_id = _correlation_id.get()
        if corr_id:
            return f"[corr={corr_id[:8]}]"
        return ""

    @staticmethod
    def clear() -> None:
        """Clear all tracing context."""
        _correlation_id.set("")
        _organization.set("")
        _repository_id.set("")
        _session_id.set("")
        _task_name.set("")

    @staticmethod
    def restore(snapshot: Dict[str, str]) -> None:
        """Reset the context to a snapshot taken with get()."""
        _correlation_id.set(snapshot.get("correlation_id", ""))
        _organization.set(snapshot.get("organization", ""))
        _repository_id.set(snapshot.get("repository_id", ""))
        _session_id.set(snapshot.get("session_id", ""))
        _task_name.set(snapshot.get("task_name", ""))
