"""
Error types raised by the ledger index engine.

Most parse problems never surface as exceptions: malformed lines are carried
as opaque text, invalid identifiers are dropped and unreadable files yield an
empty index.  The classes below cover the failures a caller is expected to
react to.
"""
from __future__ import annotations


class LedgerIndexError(Exception):
    """Base class for every error raised by :mod:`ledger_index`."""


class InvalidIdentifierError(LedgerIndexError, ValueError):
    """A raw substring failed validation for an identifier category."""

    def __init__(self, kind: str, raw: object, reason: str) -> None:
        self.kind = kind
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid {kind} {raw!r}: {reason}")


class FileSizeExceededError(LedgerIndexError):
    """A journal file is larger than the configured ``max_file_size``."""

    def __init__(self, file_path: str, actual_size: int, max_size: int) -> None:
        self.file_path = file_path
        self.actual_size = actual_size
        self.max_size = max_size
        super().__init__(
            f"File {file_path} is {actual_size} bytes, "
            f"exceeding the limit of {max_size} bytes"
        )
