"""
Tests for the input validation functions.

Tests cover:
- message_id type, sign and upper bound
- created_at/updated_at pair rules
- content type, blankness and UTF-8 size limit
"""

import pytest

from msgcache.errors import MessageValidationError
from msgcache.validation import (
    MAX_CONTENT_LENGTH,
    MAX_MESSAGE_ID,
    validate_content,
    validate_message_id,
    validate_timestamps,
)


class TestValidateMessageId:
    """Test identifier validation."""

    @pytest.mark.parametrize("message_id", [1, 42, MAX_MESSAGE_ID])
    def test_valid_ids(self, message_id):
        validate_message_id(message_id)

    @pytest.mark.parametrize("message_id", [0, -1, MAX_MESSAGE_ID + 1])
    def test_out_of_range_ids(self, message_id):
        with pytest.raises(MessageValidationError, match="positive integer within safe range"):
            validate_message_id(message_id)

    @pytest.mark.parametrize("message_id", [1.0, "1", None, True])
    def test_non_integer_ids(self, message_id):
        """Floats, strings, None and bools are rejected."""
        with pytest.raises(MessageValidationError):
            validate_message_id(message_id)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_message_id(-5)


class TestValidateTimestamps:
    """Test timestamp pair validation."""

    def test_equal_timestamps(self):
        validate_timestamps(1736935200000, 1736935200000)

    def test_updated_after_created(self):
        validate_timestamps(1736935200000, 1736935260000)

    def test_updated_before_created(self):
        with pytest.raises(MessageValidationError, match="cannot be earlier"):
            validate_timestamps(1736935260000, 1736935200000)

    @pytest.mark.parametrize("created_at", [0, -1, 1.5, "1", None])
    def test_invalid_created_at(self, created_at):
        with pytest.raises(MessageValidationError, match="created_at"):
            validate_timestamps(created_at, 1736935200000)

    @pytest.mark.parametrize("updated_at", [0, -1, 1.5, None])
    def test_invalid_updated_at(self, updated_at):
        with pytest.raises(MessageValidationError, match="updated_at"):
            validate_timestamps(1, updated_at)


class TestValidateContent:
    """Test content validation."""

    def test_plain_text(self):
        validate_content("Hello world")

    def test_surrounding_whitespace_is_allowed(self):
        validate_content("  hi  ")

    @pytest.mark.parametrize("content", ["", " ", "\n\t  "])
    def test_blank_content(self, content):
        with pytest.raises(MessageValidationError, match="cannot be empty"):
            validate_content(content)

    @pytest.mark.parametrize("content", [None, 123, b"bytes"])
    def test_non_string_content(self, content):
        with pytest.raises(MessageValidationError, match="must be a string"):
            validate_content(content)

    @pytest.mark.parametrize("content", ["hi \ud800", "\udfff tail", "a\ud83d"])
    def test_lone_surrogate_rejected(self, content):
        """Text that cannot be encoded as UTF-8 is a validation error, not an encoder crash."""
        with pytest.raises(MessageValidationError, match="valid UTF-8 text"):
            validate_content(content)

    def test_astral_character_accepted(self):
        validate_content("hi \U0001F30D")

    def test_content_at_limit(self):
        validate_content("a" * MAX_CONTENT_LENGTH)

    def test_content_over_limit(self):
        with pytest.raises(MessageValidationError, match="exceeds maximum length"):
            validate_content("a" * (MAX_CONTENT_LENGTH + 1))

    def test_limit_counts_utf8_bytes(self):
        """A multi-byte character pushes a string of fewer characters over the limit."""
        content = "é" * (MAX_CONTENT_LENGTH // 2 + 1)
        assert len(content) < MAX_CONTENT_LENGTH
        with pytest.raises(MessageValidationError, match="exceeds maximum length"):
            validate_content(content)
