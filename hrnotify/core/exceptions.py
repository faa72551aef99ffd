"""Exception hierarchy for notification dispatch."""


class DispatchError(Exception):
    """Base class for errors raised when submitting to the dispatch queue."""


class QueueFullError(DispatchError):
    """The bounded dispatch queue is at capacity."""

    def __init__(self, capacity: int):
        super().__init__(f"Dispatch queue is full (capacity {capacity})")
        self.capacity = capacity


class AlreadyQueuedError(DispatchError):
    """The notification is already queued or being processed."""

    def __init__(self, notification_id: str):
        super().__init__(f"Notification {notification_id} is already queued")
        self.notification_id = notification_id


class LifecycleError(DispatchError):
    """Operation not allowed in the current lifecycle state."""


class NotRunningError(LifecycleError):
    """The dispatcher is stopped."""

    def __init__(self, message: str = "Notification dispatcher is not running"):
        super().__init__(message)


class AlreadyRunningError(LifecycleError):
    """The dispatcher is already started."""

    def __init__(self, message: str = "Notification dispatcher is already running"):
        super().__init__(message)


class SendError(Exception):
    """A delivery attempt failed."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause

    @classmethod
    def wrap(cls, exc: BaseException) -> "SendError":
        """Return ``exc`` unchanged if it is already a SendError, else wrap it."""
        if isinstance(exc, SendError):
            return exc
        return cls(str(exc) or exc.__class__.__name__, cause=exc)


class InvalidRecipientError(SendError):
    """The recipient address was rejected before any connection was made."""


class PersistenceError(Exception):
    """A notification store read or write failed."""


class NotificationNotFoundError(PersistenceError):
    """No notification exists with the given id."""

    def __init__(self, notification_id: str):
        super().__init__(f"Notification {notification_id} not found")
        self.notification_id = notification_id


class StaleRecordError(PersistenceError):
    """The record changed since it was read (version mismatch)."""

    def __init__(self, notification_id: str, expected: int, actual: int):
        super().__init__(
            f"Notification {notification_id} is at version {actual}, expected {expected}"
        )
        self.notification_id = notification_id
        self.expected = expected
        self.actual = actual


class InvalidTransitionError(PersistenceError):
    """The requested status change would break a record invariant."""


class TerminalStateError(InvalidTransitionError):
    """The record is SENT or FAILED and can no longer change."""

    def __init__(self, notification_id: str, status: str):
        super().__init__(f"Notification {notification_id} is already {status}")
        self.notification_id = notification_id
        self.status = status
