"""Custom exceptions for capi-ops."""


class CapiOpsError(Exception):
    """Base exception for all capi-ops errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or how to override
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class ValidationError(CapiOpsError):
    """Exception raised for malformed caller input."""

    pass


class InvalidAddressingError(ValidationError):
    """Neither a node name nor a namespace/machine pair was supplied."""

    pass


class MissingTargetError(ValidationError):
    """A required sub-resource name for the requested target is missing."""

    pass


class InvalidTargetError(ValidationError):
    """The requested operation target is not one of the supported values."""

    pass


class UnsafeDeleteError(CapiOpsError):
    """A destructive operation failed its safety check and needs force."""

    pass


class NodeNotBoundError(CapiOpsError):
    """The machine has not joined the cluster as a node yet."""

    pass


class UnsupportedOperationError(CapiOpsError):
    """The operation is not implemented for this object."""

    pass


class ConfigurationError(CapiOpsError):
    """Exception raised for configuration errors."""

    pass


class StoreError(CapiOpsError):
    """Exception raised by the resource store."""

    def wrap(self, context: str) -> "StoreError":
        """Return an error of the same class with operation context prefixed."""
        return type(self)(f"{context}: {self.message}", self.details)


class NotFoundError(StoreError):
    """The target object does not exist."""

    pass


class ConflictError(StoreError):
    """The store rejected a write against a stale revision."""

    pass


class OperationCancelledError(StoreError):
    """The request was cancelled or ran past its deadline."""

    pass
