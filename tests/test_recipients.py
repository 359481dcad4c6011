"""Tests for recipient address validation."""

import pytest

from ticket_alerts.recipients import validate_email, validate_emails


class TestValidateEmail:
    """Tests for validate_email."""

    @pytest.mark.parametrize(
        "email",
        ["a@b.co", "first.last@example.com", "ops+alerts@sub.domain.fr"],
    )
    def test_valid(self, email):
        """Test well-formed addresses."""
        assert validate_email(email) is True

    @pytest.mark.parametrize(
        "email",
        ["not-an-email", "missing@tld", "@example.com", "a b@example.com", "a@@b.co", ""],
    )
    def test_invalid(self, email):
        """Test malformed addresses."""
        assert validate_email(email) is False


class TestValidateEmails:
    """Tests for validate_emails."""

    def test_partition_preserves_order(self):
        """Test each group keeps the input order."""
        result = validate_emails(["z@b.co", "bad", "a@b.co", "also bad", "m@b.co"])
        assert result.valid == ["z@b.co", "a@b.co", "m@b.co"]
        assert result.invalid == ["bad", "also bad"]
        assert result.all_valid is False

    def test_entries_are_trimmed(self):
        """Test whitespace is stripped before validation."""
        result = validate_emails(["  ops@example.com \n", " nope "])
        assert result.valid == ["ops@example.com"]
        assert result.invalid == ["nope"]

    def test_empty_list(self):
        """Test empty input gives empty groups."""
        result = validate_emails([])
        assert result.valid == []
        assert result.invalid == []
        assert result.all_valid is True
