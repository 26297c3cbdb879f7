from __future__ import annotations

from typing import Optional


class VotingError(ValueError):
    """Base class for every rejected voting operation.

    A rejected operation never leaves partial effects behind; the caller may
    retry once the precondition holds.
    """


class AuthorizationError(VotingError):
    pass


class InvalidPhaseError(VotingError):
    def __init__(self, message: str, *, expected: Optional[object] = None, actual: Optional[object] = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class DuplicateError(VotingError):
    pass


class AlreadyVotedError(VotingError):
    pass


class OutOfRangeError(VotingError, IndexError):
    pass


class SnapshotError(ValueError):
    pass


class ConfigError(ValueError):
    pass
