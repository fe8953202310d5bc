"""
Error taxonomy for MedTrack.

ValidationError and StorageError reach the caller; MalformedDataError stays
inside the repository's normalization pass and is only logged.
"""


class MedTrackError(Exception):
    """Base class for every error raised by the tracker core."""


class ValidationError(MedTrackError):
    """User input failed a precondition. Nothing was written."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StorageError(MedTrackError):
    """The key-value store failed to read or write a value."""

    def __init__(self, key: str, message: str):
        super().__init__(f"store operation on '{key}' failed: {message}")
        self.key = key


class MalformedDataError(MedTrackError):
    """A stored record is missing or has unusable fields."""
