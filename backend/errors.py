"""Error types raised by the log store and the import/export layer."""


class NicoTrackerError(Exception):
    """Base class for all tracker errors."""


class StorageError(NicoTrackerError):
    """The storage medium rejected a write (quota exceeded, database error)."""


class NotFoundError(NicoTrackerError):
    """No log record carries the requested id."""


class ParseError(NicoTrackerError):
    """A stored blob could not be decoded. Handled on the read path."""


class ImportValidationError(NicoTrackerError):
    """An import file was readable but its content is malformed."""


class ImportReadError(NicoTrackerError):
    """An import file could not be read or decoded."""
