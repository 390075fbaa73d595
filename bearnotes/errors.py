"""Exceptions raised by the bearnotes engine.

Missing ids are not errors here: mutating operations return ``None``/``False``
and callers check the value. Only storage failures and malformed arguments
are raised.
"""
from __future__ import annotations
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    # Argument errors (1xxx)
    UNKNOWN_FOLDER = 1001
    INVALID_TAG = 1002

    # Storage errors (4xxx)
    STORAGE_CORRUPT = 4001
    STORAGE_WRITE_FAILED = 4002


class BearNotesError(Exception):
    code: ErrorCode

    def __init__(self, message: str, *, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class StorageError(BearNotesError):
    """Base for failures of the underlying blob store."""


class StorageCorruptError(StorageError):
    """A stored collection could not be decoded. Handled inside the engine."""

    code = ErrorCode.STORAGE_CORRUPT

    def __init__(self, key: str, reason: str):
        super().__init__(f"collection '{key}' is corrupt: {reason}")
        self.key = key


class StorageWriteError(StorageError):
    """The blob store rejected a write; nothing from that operation was committed."""

    code = ErrorCode.STORAGE_WRITE_FAILED

    def __init__(self, keys, reason: str):
        keys = sorted(keys)
        super().__init__(f"failed to write {', '.join(keys)}: {reason}")
        self.keys = keys


class UnknownFolderError(BearNotesError, ValueError):
    code = ErrorCode.UNKNOWN_FOLDER

    def __init__(self, folder_id: str):
        super().__init__(f"Folder '{folder_id}' does not exist")
        self.folder_id = folder_id


class InvalidTagError(BearNotesError, ValueError):
    code = ErrorCode.INVALID_TAG

    def __init__(self, tag: str):
        super().__init__(f"'{tag}' is not a valid tag")
        self.tag = tag
