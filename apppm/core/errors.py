# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for the package manager.

All exceptions inherit from PackageManagerError and carry an ErrorKind,
whose integer value is the result code delivered to observers.
"""

from enum import IntEnum
from typing import Optional


class ErrorKind(IntEnum):
    """Result codes reported through observer callbacks (0 = success)"""
    OK = 0
    NOT_FOUND = 1
    MALFORMED_MANIFEST = 2
    UNSUPPORTED_TYPE = 3
    IO_ERROR = 4
    PERMISSION_DENIED = 5
    ILLEGAL_STATE = 6
    PARSE_ERROR = 7
    SERVICE_UNAVAILABLE = 8


class PackageManagerError(Exception):
    """Base exception for all package manager errors."""

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        details: Optional[dict] = None
    ):
        """
        Initialize package manager error.

        Args:
            message: Human-readable error message
            kind: Error kind (defaults to the class-level kind)
            details: Additional error details
        """
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details = details or {}
        super().__init__(self.message)

    @property
    def code(self) -> int:
        return int(self.kind)

    def to_dict(self) -> dict:
        """Convert error to dictionary for callers and logs."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "kind": self.kind.name,
            "code": self.code,
            "details": self.details
        }


class NotFoundError(PackageManagerError):
    """Package or source not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        """
        Initialize not found error.

        Args:
            resource: Type of resource (e.g., "Package", "Source")
            identifier: Resource identifier
            details: Additional error details
        """
        message = f"{resource} not found: {identifier}"
        super().__init__(message, details=details)
        self.resource = resource
        self.identifier = identifier


class ManifestError(PackageManagerError):
    """Base class for manifest parsing failures."""

    def __init__(self, message: str, manifest_path: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.manifest_path = manifest_path


class MalformedManifestError(ManifestError):
    """Manifest is missing required fields."""

    kind = ErrorKind.MALFORMED_MANIFEST

    def __init__(
        self,
        message: str,
        manifest_path: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, manifest_path=manifest_path, details=details)
        self.field = field


class UnsupportedTypeError(ManifestError):
    """Manifest declares an unknown application type."""

    kind = ErrorKind.UNSUPPORTED_TYPE


class ManifestIOError(ManifestError):
    """Manifest could not be read."""

    kind = ErrorKind.IO_ERROR


class ManifestParseError(ManifestError):
    """Manifest is not a valid JSON document."""

    kind = ErrorKind.PARSE_ERROR


class PackageIOError(PackageManagerError):
    """Filesystem operation failed."""

    kind = ErrorKind.IO_ERROR

    def __init__(self, message: str, path: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.path = path


class PermissionDeniedError(PackageIOError):
    """Directory create/remove/rename denied."""

    kind = ErrorKind.PERMISSION_DENIED


class IllegalStateError(PackageManagerError):
    """Staging or extraction failed."""

    kind = ErrorKind.ILLEGAL_STATE


class PackageListCorruptError(PackageManagerError):
    """Persisted package list exists but cannot be parsed."""

    kind = ErrorKind.PARSE_ERROR

    def __init__(self, message: str, list_path: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.list_path = list_path


class PackageListIOError(PackageIOError):
    """Persisted package list cannot be read or written."""


class ServiceUnavailableError(PackageManagerError):
    """Service not started or already shut down."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class ConfigurationError(PackageManagerError):
    """Configuration error."""

    kind = ErrorKind.ILLEGAL_STATE

    def __init__(self, message: str, config_file: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize configuration error.

        Args:
            message: Configuration error message
            config_file: Configuration file path
            details: Additional error details
        """
        super().__init__(message, details=details)
        self.config_file = config_file


# Error Message Utilities

def sanitize_error_for_user(error: Exception, include_type: bool = False) -> str:
    """
    Sanitize error messages for observer callbacks.
    Removes stack traces and limits length.

    Args:
        error: The exception to sanitize
        include_type: Whether to include exception type

    Returns:
        User-friendly error message without stack trace
    """
    error_msg = str(error).strip().splitlines()[0] if str(error).strip() else ""

    # Limit message length
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."

    if include_type:
        return f"{error.__class__.__name__}: {error_msg}"

    return error_msg
