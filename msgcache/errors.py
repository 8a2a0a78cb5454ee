"""
Exception hierarchy for the message cache.

Validation, conflict and not-found errors describe caller mistakes and are
never retried. Transient storage errors are raised only once the retry
policy has given up.
"""


class MessageStoreError(RuntimeError):
    """Base class for message cache errors."""


class MessageValidationError(MessageStoreError, ValueError):
    """Raised when an identifier, timestamp or content fails validation."""


class MessageConflictError(MessageStoreError):
    """Raised when inserting a message_id that already exists."""


class MessageNotFoundError(MessageStoreError):
    """Raised when updating or deleting a message_id that does not exist."""


class DatabaseInitializationError(MessageStoreError):
    """Raised when the database file cannot be opened or bootstrapped."""


class TransientStorageError(MessageStoreError):
    """Raised when lock/busy retries are exhausted."""
