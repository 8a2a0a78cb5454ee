"""
Input checks run before any storage access.

All functions are pure and raise MessageValidationError naming the violated
constraint.
"""

from msgcache.errors import MessageValidationError

# ~1MB of UTF-8 encoded text
MAX_CONTENT_LENGTH = 1_000_000

# Largest integer a JSON/JavaScript client can represent exactly
MAX_MESSAGE_ID = 2**53 - 1


def _is_int(value) -> bool:
    # bool is a subclass of int but never a valid identifier or timestamp
    return isinstance(value, int) and not isinstance(value, bool)


def validate_message_id(message_id) -> None:
    """Require a positive integer within the safe identifier range."""
    if not _is_int(message_id) or message_id <= 0 or message_id > MAX_MESSAGE_ID:
        raise MessageValidationError(
            "Invalid message ID: must be a positive integer within safe range"
        )


def validate_timestamps(created_at, updated_at) -> None:
    """
    Validate an epoch-millisecond timestamp pair.

    Both values must be positive integers and updated_at may not be earlier
    than created_at.
    """
    if not _is_int(created_at) or created_at <= 0:
        raise MessageValidationError(
            "Invalid created_at timestamp: must be a positive integer"
        )

    if not _is_int(updated_at) or updated_at <= 0:
        raise MessageValidationError(
            "Invalid updated_at timestamp: must be a positive integer"
        )

    if updated_at < created_at:
        raise MessageValidationError(
            "updated_at timestamp cannot be earlier than created_at timestamp"
        )


def validate_content(content) -> None:
    """Require non-blank, UTF-8 encodable text no larger than MAX_CONTENT_LENGTH bytes."""
    if not isinstance(content, str):
        raise MessageValidationError("Content must be a string")

    if not content.strip():
        raise MessageValidationError("Content cannot be empty")

    try:
        encoded = content.encode("utf-8")
    except UnicodeEncodeError:
        raise MessageValidationError("Content must be valid UTF-8 text")

    if len(encoded) > MAX_CONTENT_LENGTH:
        raise MessageValidationError(
            f"Content exceeds maximum length limit of {MAX_CONTENT_LENGTH} bytes"
        )
