"""Custom exceptions for the Mova widget task pipeline."""

from pathlib import Path


def sanitize_path_for_error(path: str | Path) -> str:
    """Extract only the filename from a path for safe error messages.

    Args:
        path: Full path or filename.

    Returns:
        Just the filename portion.
    """
    if isinstance(path, Path):
        return path.name
    return Path(path).name


class MovaWidgetError(Exception):
    """Base exception for all Mova widget errors."""

    pass


class StorageError(MovaWidgetError):
    """Raised when the shared store cannot be read or written."""

    pass


class CorruptStoreError(StorageError):
    """Raised when the shared store file exists but does not hold a JSON object.

    Note:
        Error messages only include the filename, not the full path.
    """

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Store file {sanitize_path_for_error(path)} is corrupt: {reason}")


class FileLockError(StorageError):
    """Raised when the cross-process file lock cannot be acquired."""

    def __init__(
        self,
        lock_path: str,
        timeout: float,
        message: str | None = None,
    ) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        safe_name = sanitize_path_for_error(lock_path)
        self.message = message or f"Failed to acquire file lock at {safe_name} after {timeout}s"
        super().__init__(self.message)


class ValidationError(MovaWidgetError):
    """Raised when input validation fails."""

    pass
