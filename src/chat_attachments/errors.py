"""
Exceptions raised by the attachment lifecycle subsystem.
"""


class AttachmentError(Exception):
    """Base exception for all attachment storage errors."""


class NotInitializedError(AttachmentError, RuntimeError):
    """Raised when the attachment store is used before its root is set."""


class AlreadyInitializedError(AttachmentError, RuntimeError):
    """Raised when the attachment root is initialized a second time."""


class InvalidRootError(AttachmentError, ValueError):
    """Raised when the supplied root directory is empty or implausibly short."""


class InvalidAttachmentPathError(AttachmentError, ValueError):
    """Raised when a relative path resolves outside the attachments root."""

    def __init__(self, message: str, relative_path: str) -> None:
        super().__init__(message)
        self.relative_path = relative_path


class MissingDataError(AttachmentError, ValueError):
    """Raised when an attachment has no inline data to migrate."""


class InvalidDataTypeError(AttachmentError, TypeError):
    """Raised when an attachment's inline data is not a binary buffer."""


class MissingPathError(AttachmentError, ValueError):
    """Raised when loading an attachment that has no on-disk path."""


class BlobNotFoundError(AttachmentError, FileNotFoundError):
    """Raised when reading a blob that does not exist on disk."""

    def __init__(self, relative_path: str) -> None:
        super().__init__(f"Attachment blob not found: {relative_path}")
        self.relative_path = relative_path


class AttachmentCleanupError(AttachmentError):
    """Raised when one or more deletions of a cascading cleanup failed.

    Every sibling deletion is still attempted; ``failures`` holds one
    ``(relative_path, exception)`` pair per failed deletion.
    """

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        paths = ", ".join(path for path, _ in failures)
        super().__init__(
            f"Failed to delete {len(failures)} attachment file(s): {paths}"
        )
        self.failures = failures
