"""Errors raised by the ez_mongo wrapper."""


class EzMongoError(Exception):
    """Base class for every error raised by ez_mongo itself."""


class MissingDatabaseNameError(EzMongoError):
    """Raised at construction time when no database name is configured."""


class InvalidConnectionTargetError(EzMongoError):
    """Raised when host/port settings cannot be turned into a connection URI."""


class DisabledError(EzMongoError):
    """Raised when the database is used while disabled."""


class DatabaseConnectionError(EzMongoError):
    """Raised when the connection attempt failed.

    The error is cached until the guard is closed, so every later caller sees
    the same instance. The driver error is available as ``__cause__``.
    """


class ImmutableKeyError(EzMongoError):
    """Raised when an update tries to set or unset ``_id``."""


class WholeDocumentReplacementError(EzMongoError):
    """Raised when an update payload is a full document instead of operators."""


class MissingFieldsError(EzMongoError):
    """Raised when a find has no field projection but one is required."""


class NoCallbackError(EzMongoError):
    """Raised when an operation is submitted without a completion callback."""
