"""
Error types raised while decoding, diagnosing and patching saves.

Every failure is fatal for the current run: nothing catches these inside the
core, the caller gets the exception and no output bytes.
"""

from typing import Optional


class SaveFormatError(ValueError):
    """Base class for everything that makes a save unreadable or unpatchable."""


class UnexpectedEnd(SaveFormatError):
    """Fewer bytes remain than a read asked for."""

    def __init__(self, offset: int, requested: int, available: int):
        self.offset = offset
        self.requested = requested
        self.available = available
        super().__init__(
            f"Unexpected end of data at offset {offset:#x}: "
            f"needed {requested} bytes, {available} available"
        )


class SizeMismatch(SaveFormatError):
    """A length prefix disagrees with what its body actually decoded to."""

    def __init__(self, what: str, declared: int, actual: int, offset: Optional[int] = None):
        self.what = what
        self.declared = declared
        self.actual = actual
        self.offset = offset
        where = f" at offset {offset:#x}" if offset is not None else ""
        super().__init__(f"{what}{where}: declared {declared} bytes, decoded {actual}")


class StructureNotFound(SaveFormatError):
    """The save does not have the shape this tool knows how to repair."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Structure not found: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class AlreadyExists(SaveFormatError):
    """A character record with the same identity is already in the table."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Character record already exists: {key}")


class CompressionError(SaveFormatError):
    """The compressed payload is damaged (not merely short)."""


class UnresolvedInstance(SaveFormatError):
    """A missing member has no known character instance id to recreate."""

    def __init__(self, player_uid):
        self.player_uid = player_uid
        super().__init__(
            f"No instance id known for player {player_uid}; "
            f"supply the player's save from the Players directory"
        )
