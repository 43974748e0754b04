"""Errors module."""


class BemError(Exception):
    """Base error of the BEM correlation service."""


class UnknownFieldError(BemError):
    """Undeclared field name used on a property container."""

    def __init__(self, container_name: str, field_name: str) -> None:
        """init."""
        super().__init__(f"{container_name} has no field '{field_name}'")
        self.container_name = container_name
        self.field_name = field_name


class IdentityConflictError(BemError):
    """Stored row with the same identity describes another monitored object."""


class StoreIOError(BemError):
    """Storage query failed."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        """init."""
        super().__init__(message)
        self.retryable = retryable


class ProcessDispatchError(BemError):
    """External notifier could not be started."""


class EnrichmentQueryError(BemError):
    """Custom variables could not be fetched."""


class NotificationStateError(BemError):
    """Notification handler used outside of its running state."""
