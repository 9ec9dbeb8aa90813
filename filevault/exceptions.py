"""Exception hierarchy for FileVault.

Each error carries the HTTP status the web layer answers with.
"""


class FileVaultError(Exception):
    """Base exception for all FileVault errors."""

    status_code = 500


class InvalidPathError(FileVaultError):
    """Raised when a path escapes the upload root or is malformed."""

    status_code = 400


class InvalidRequestError(FileVaultError):
    """Raised when a required request field is missing or blank."""

    status_code = 400


class AccessDeniedError(FileVaultError):
    """Raised when a protected directory is accessed without a valid password."""

    status_code = 403


class NotFoundError(FileVaultError):
    """Raised when a file record, directory or physical file does not exist."""

    status_code = 404


class NoFilesError(FileVaultError):
    """Raised when an upload carries no files."""

    status_code = 400


class PayloadTooLargeError(FileVaultError):
    """Raised when an uploaded file exceeds the size limit."""

    status_code = 400


class TooManyFilesError(FileVaultError):
    """Raised when an upload carries more files than allowed."""

    status_code = 400


class UnsupportedTypeError(FileVaultError):
    """Raised when a file extension is not in the allow-list."""

    status_code = 400


class DuplicateDirectoryError(FileVaultError):
    """Raised when creating a directory that already exists."""

    status_code = 400


class FileConflictError(FileVaultError):
    """Raised when a move target is already occupied."""

    status_code = 400


class DuplicateIdError(FileVaultError):
    """Raised when inserting a file record whose id already exists."""


class StorageError(FileVaultError):
    """Raised when storage operations fail."""


class MirrorError(FileVaultError):
    """Raised when the external mirror sink rejects an upload."""


class ConfigError(FileVaultError):
    """Raised when configuration is invalid."""
