"""Error types raised by the reading log."""


class ReadlogError(Exception):
    """Base class for reading log errors."""


class InvalidRecordError(ReadlogError):
    """Raw import record cannot become a book (no title). Skipped, never fatal."""


class ValidationError(ReadlogError):
    """A book field breaks a constraint. Message is shown to the user."""


class TransportError(ReadlogError):
    """The backing store failed a read or write."""


class ParseError(ReadlogError):
    """Import payload is not a JSON array of records."""
