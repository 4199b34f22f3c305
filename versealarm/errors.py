"""Exceptions raised by Verse Alarm."""


class VerseAlarmError(Exception):
    """Base class for application errors."""


class StorageError(VerseAlarmError):
    """A record could not be written to or removed from the store."""


class AlarmOperationError(VerseAlarmError):
    """A lifecycle operation failed and was not applied."""


class InvalidTransitionError(AlarmOperationError):
    """The requested transition is not valid from the alarm's current state."""


class PayloadError(ValueError):
    """A trigger payload does not match the alarm payload schema."""
