"""Exception classes for the multipart upload workflow."""


class MultipartUploadError(Exception):
    """Base error for the multipart upload workflow."""


class ConfigurationError(MultipartUploadError):
    """Raised when required configuration is missing or invalid."""


class ControlPlaneError(MultipartUploadError):
    """Raised when a create, sign or complete call to the control plane fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        part_number: int | None = None,
    ) -> None:
        """Initialize ControlPlaneError.

        Args:
            message: Human readable description of the failure.
            operation: Control-plane operation that failed.
            part_number: Part being signed, for sign failures.
        """
        super().__init__(message)
        self.operation = operation
        self.part_number = part_number


class TransportError(MultipartUploadError):
    """Raised when the byte transfer of a single part fails."""

    def __init__(self, message: str, *, part_number: int) -> None:
        """Initialize TransportError.

        Args:
            message: Human readable description of the failure.
            part_number: 1-based number of the part that failed.
        """
        super().__init__(message)
        self.part_number = part_number


class InvalidResumeRecord(MultipartUploadError):
    """Raised internally when a persisted record cannot be resumed."""
