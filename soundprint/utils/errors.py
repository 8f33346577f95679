"""
Custom exceptions for soundprint.

Matching itself never raises for degenerate input; these cover the
surrounding collaborators (decoding, configuration, library storage).
"""

from typing import Optional, Any


class SoundprintError(Exception):
    """Base exception for all soundprint errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class AudioLoadError(SoundprintError):
    """Raised when an audio file cannot be read."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path})
        self.file_path = file_path


class AudioDecodeError(AudioLoadError):
    """Raised when the decoder cannot turn a file into PCM samples."""

    kind = "audio decode failed"

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, file_path=file_path)
        self.original_error = original_error
        self.details = {
            "kind": self.kind,
            "file_path": file_path,
            "original_error": str(original_error) if original_error else None,
        }


class UnsupportedFormatError(AudioLoadError):
    """Raised when audio format is not supported."""

    def __init__(self, message: str, format: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.details = {"format": format}


class FileTooLargeError(AudioLoadError):
    """Raised when audio file exceeds size limit."""

    def __init__(
        self,
        message: str,
        file_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        super().__init__(message)
        self.file_size = file_size
        self.max_size = max_size
        self.details = {"file_size": file_size, "max_size": max_size}


class ConfigurationError(SoundprintError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}


class LibraryError(SoundprintError):
    """Raised when a fingerprint library operation fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        audio_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.audio_id = audio_id
        self.details = {"operation": operation, "audio_id": audio_id}


class EntryNotFoundError(LibraryError):
    """Raised when a library entry does not exist."""

    def __init__(self, audio_id: str):
        super().__init__(
            f"Fingerprint not found: {audio_id}",
            operation="get",
            audio_id=audio_id,
        )


class StoreError(LibraryError):
    """Raised when the persisted library cannot be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, operation="store")
        self.path = path
        self.details["path"] = path


class MatchCancelledError(SoundprintError):
    """Raised when a library scan is cancelled by its caller."""

    def __init__(self, scanned: int, total: int):
        super().__init__(
            f"Match cancelled after {scanned} of {total} entries",
            details={"scanned": scanned, "total": total},
        )
        self.scanned = scanned
        self.total = total
