"""Custom exceptions for dirmirror.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application.
"""

from .constants import ACCESS_ERROR_OPERATION_NOT_PERMITTED


class DirMirrorError(RuntimeError):
    """Base class for all dirmirror errors."""
    pass


# Structural Errors
class StructuralError(DirMirrorError):
    """Base class for errors caused by the shape of the trees being synced."""
    pass


class SymlinkRootError(StructuralError):
    """Root directory given to a walk is a symlink."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Cannot get items from given path '{path}' because it is a symlink, "
            f"reading and/or writing to a symlink is not supported."
        )


class NotADirectoryRootError(StructuralError):
    """Root directory given to a walk exists but is not a directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Cannot get items from given path '{path}' because it is not a directory"
        )


class ShapeConflictError(StructuralError):
    """A file and a directory were merged at the same relative path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Cannot merge two directories with different content structures (at '{path}')"
        )


# Removal Errors
class RemovalError(DirMirrorError):
    """Base class for errors confirming that a path was removed."""
    pass


class PathStillExistsError(RemovalError):
    """Path is still accessible after a remove call."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path exists {path}")


class PendingDeleteError(RemovalError):
    """Path is stuck in a pending-delete state after a remove call."""

    def __init__(self, path: str, code: str = ACCESS_ERROR_OPERATION_NOT_PERMITTED):
        self.path = path
        self.code = code
        super().__init__(
            f"Path exists {path} but received {code} when accessing it. "
            f"If a remove call has just been made this likely means the item is in a "
            f"'PENDING DELETE' state due to another process still accessing it."
        )


class UnexpectedAccessError(RemovalError):
    """Access check after a remove call failed with an unknown code."""

    def __init__(self, path: str, code: str):
        self.path = path
        self.code = code
        super().__init__(f"Unexpected error '{code}' accessing {path}")


# Copy Errors
class CopyError(DirMirrorError):
    """Copying an item from source to destination failed."""

    def __init__(self, source: str, destination: str, reason: str):
        self.source = source
        self.destination = destination
        super().__init__(f"Unable to copy item {source} to {destination}: {reason}")


# Configuration Errors
class ConfigError(DirMirrorError):
    """Base class for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Configuration file could not be parsed or has wrong value types."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Invalid configuration in {path}: {reason}")
