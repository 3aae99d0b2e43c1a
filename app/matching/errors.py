"""
Dietary Matching Errors

InputError and UpstreamFetchError are the only failures the matching
engine surfaces. Unknown restriction names and unresolved restrictions
are not errors; the engine treats them as "no conflict" and "skip".
"""

from typing import Optional


class DietaryMatchingError(Exception):
    """Base exception for the dietary matching layer."""

    def __init__(self, message: str, user_id: Optional[str] = None):
        super().__init__(message)
        self.user_id = user_id


class InputError(DietaryMatchingError):
    """Item batch missing or malformed. Nothing was processed."""
    pass


class UpstreamFetchError(DietaryMatchingError):
    """The preference store failed. Never downgraded to 'no restrictions'."""
    pass
