"""Per-request logging context.

Every log line written while a student chats or a teacher opens the dashboard
carries the same correlation id, so one conversation can be followed through
the coach gateway and the store.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LogContext:
    """Holds contextual information for logging."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str | None = None
    student_name: str | None = None
    role: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for log enrichment."""
        result: dict[str, Any] = {"correlation_id": self.correlation_id}

        if self.operation:
            result["operation"] = self.operation
        if self.student_name:
            result["student_name"] = self.student_name
        if self.role:
            result["role"] = self.role

        result.update(self.extra)
        return result


_log_context: ContextVar[LogContext | None] = ContextVar("heartcoach_log_context", default=None)


def get_context() -> LogContext:
    """Get the current log context, creating a new one if none exists."""
    ctx = _log_context.get()
    if ctx is None:
        ctx = LogContext()
        _log_context.set(ctx)
    return ctx


def clear_context() -> None:
    """Clear the current log context."""
    _log_context.set(None)


class ContextManager:
    """Scope a log context to a block; the previous context is restored on exit."""

    def __init__(
        self,
        correlation_id: str | None = None,
        operation: str | None = None,
        student_name: str | None = None,
        role: str | None = None,
        **extra: Any,
    ) -> None:
        parent = _log_context.get()
        self.new_context = LogContext(
            # Nested scopes keep the outer correlation id
            correlation_id=correlation_id
            or (parent.correlation_id if parent else uuid.uuid4().hex[:12]),
            operation=operation,
            student_name=student_name or (parent.student_name if parent else None),
            role=role or (parent.role if parent else None),
            extra=extra,
        )
        self._previous_context: LogContext | None = None

    def __enter__(self) -> LogContext:
        self._previous_context = _log_context.get()
        _log_context.set(self.new_context)
        return self.new_context

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _log_context.set(self._previous_context)


def with_context(
    correlation_id: str | None = None,
    operation: str | None = None,
    student_name: str | None = None,
    role: str | None = None,
    **extra: Any,
) -> ContextManager:
    """Create a context manager with the specified logging context.

    Usage:
        with with_context(operation="chat_turn", student_name="Mina", role="student"):
            logger.info("Sending turn to coach")
    """
    return ContextManager(
        correlation_id=correlation_id,
        operation=operation,
        student_name=student_name,
        role=role,
        **extra,
    )
