"""Error taxonomy for dispatch operations.

Not-found errors subclass ``LookupError`` and validation/conflict errors
subclass ``ValueError`` so callers can react per category. None of them is
fatal: a failed operation leaves every record in its prior state.
"""

from __future__ import annotations

from typing import Optional


class DispatchError(Exception):
    """Base class for every recoverable dispatch failure."""


class NotFoundError(DispatchError, LookupError):
    """A referenced record does not exist."""


class OrderNotFound(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order '{order_id}' not found.")
        self.order_id = order_id


class DriverNotFound(NotFoundError):
    def __init__(self, driver_id: str) -> None:
        super().__init__(f"Driver '{driver_id}' not found.")
        self.driver_id = driver_id


class ScheduledAssignmentNotFound(NotFoundError):
    def __init__(self, scheduled_id: str) -> None:
        super().__init__(f"Scheduled assignment '{scheduled_id}' not found.")
        self.scheduled_id = scheduled_id


class NotificationNotFound(NotFoundError):
    def __init__(self, notification_id: str) -> None:
        super().__init__(f"Notification '{notification_id}' not found.")
        self.notification_id = notification_id


class ConflictError(DispatchError, ValueError):
    """The request is well-formed but conflicts with current state."""


class NotAssignable(ConflictError):
    """Eligibility failed; ``reason`` is the single most relevant blocker."""

    def __init__(self, reason: str, conflict_order_id: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.conflict_order_id = conflict_order_id


class NoActiveAssignment(ConflictError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order '{order_id}' has no assigned driver.")
        self.order_id = order_id


class InvalidTransition(ConflictError):
    def __init__(self, current: object, target: object, reason: str | None = None) -> None:
        current_label = getattr(current, "value", current)
        target_label = getattr(target, "value", target)
        message = reason or f"Transition from {current_label} to {target_label} is not permitted."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = message


class InvalidSchedule(ConflictError):
    """Deferred assignment request that cannot be honoured."""
