# src/teamtasks/errors.py

"""
Error taxonomy.

Validation errors abort the triggering action before any state is changed.
StorageFailure wraps whatever the backing store raised.
"""

from __future__ import annotations


class TaskTrackerError(Exception):
    """Base class for errors that are meant to be shown to the user."""


class ValidationError(TaskTrackerError):
    pass


class InvalidName(ValidationError):
    pass


class InvalidUrl(ValidationError):
    pass


class DuplicateName(TaskTrackerError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Employee name already exists: {name}")
        self.name = name


class NotFound(TaskTrackerError):
    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class FileTooLarge(TaskTrackerError):
    def __init__(self, name: str, size: int, limit: int) -> None:
        super().__init__(f"File too large (max {limit / (1024 * 1024):g} MB): {name}")
        self.name = name
        self.size = size
        self.limit = limit


class UnsupportedFileType(TaskTrackerError):
    def __init__(self, name: str, mime: str) -> None:
        super().__init__(f"Unsupported file type ({mime or 'unknown'}): {name}")
        self.name = name
        self.mime = mime


class StorageFailure(TaskTrackerError):
    pass
