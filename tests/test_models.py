"""Tests for data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from ticket_alerts.models import (
    EmailValidation,
    NotificationResult,
    OverdueInfo,
    OverdueLevel,
    SeverityThresholds,
    ThresholdTable,
    Ticket,
    TicketSource,
)


class TestTicket:
    """Tests for Ticket model."""

    def test_minimal_ticket(self):
        """Test ticket with only an id."""
        ticket = Ticket(id="CAS-1")
        assert ticket.source == TicketSource.CLARIFY
        assert ticket.created_at is None
        assert ticket.status == ""

    def test_numeric_severity_becomes_text(self):
        """Test spreadsheet numbers are stored as codes."""
        assert Ticket(id="1", severity=1).severity == "1"
        assert Ticket(id="1", severity=2.0).severity == "2"
        assert Ticket(id="1", severity=None).severity == ""

    def test_source_from_string(self):
        """Test source accepts its string value."""
        ticket = Ticket(id="1", source="itsm-incident")
        assert ticket.source == TicketSource.ITSM_INCIDENT
        assert ticket.source.is_incident is True
        assert TicketSource.JIRA.is_incident is False

    def test_raw_excluded_from_dump(self):
        """Test the raw row is not serialized."""
        ticket = Ticket(id="1", raw={"ID cas": "1"}, created_at=datetime(2025, 1, 1))
        dumped = ticket.model_dump(mode="json")
        assert "raw" not in dumped
        assert dumped["created_at"] == "2025-01-01T00:00:00"


class TestOverdueInfo:
    """Tests for OverdueInfo model."""

    def test_default_is_not_overdue(self):
        """Test default values."""
        info = OverdueInfo.not_overdue()
        assert info.is_overdue is False
        assert info.level == OverdueLevel.NONE
        assert info.hours_overdue == 0
        assert info.days_overdue == 0

    def test_not_overdue_with_level_rejected(self):
        """Test the not-overdue invariant is enforced."""
        with pytest.raises(ValidationError):
            OverdueInfo(is_overdue=False, level=OverdueLevel.WARNING)

    def test_not_overdue_with_magnitude_rejected(self):
        """Test magnitudes must be zero when not overdue."""
        with pytest.raises(ValidationError):
            OverdueInfo(is_overdue=False, hours_overdue=3)

    def test_overdue_needs_level(self):
        """Test an overdue result needs a real level."""
        with pytest.raises(ValidationError):
            OverdueInfo(is_overdue=True, level=OverdueLevel.NONE, hours_overdue=5)

    def test_negative_magnitude_rejected(self):
        """Test magnitudes are non-negative."""
        with pytest.raises(ValidationError):
            OverdueInfo(is_overdue=True, level=OverdueLevel.WARNING, hours_overdue=-1)

    def test_immutable(self):
        """Test model is frozen."""
        info = OverdueInfo.not_overdue()
        with pytest.raises(ValidationError):
            info.level = OverdueLevel.SEVERE

    def test_describe_days(self):
        """Test description prefers days."""
        info = OverdueInfo(
            is_overdue=True, level=OverdueLevel.SEVERE, hours_overdue=50, days_overdue=2
        )
        assert info.describe() == "2 days overdue"

    def test_describe_hours(self):
        """Test description falls back to hours."""
        info = OverdueInfo(is_overdue=True, level=OverdueLevel.WARNING, hours_overdue=5)
        assert info.describe() == "5 hours overdue"


class TestThresholds:
    """Tests for threshold models."""

    def test_default_table(self):
        """Test default bands per severity."""
        table = ThresholdTable()
        assert table.for_severity("1") == SeverityThresholds(warning=4, critical=12, severe=24)
        assert table.for_severity("2") == SeverityThresholds(warning=8, critical=24, severe=48)
        assert table.for_severity("3") == SeverityThresholds(warning=24, critical=72, severe=168)
        assert table.for_severity("S1") == SeverityThresholds(warning=48, critical=168, severe=336)

    def test_bands_must_be_ordered(self):
        """Test decreasing bands are rejected."""
        with pytest.raises(ValidationError):
            SeverityThresholds(warning=10, critical=5, severe=20)


class TestResults:
    """Tests for result models."""

    def test_notification_result(self):
        """Test result fields."""
        result = NotificationResult(success=False, message="boom")
        assert result.overdue_count == 0

    def test_email_validation_defaults(self):
        """Test empty validation result."""
        result = EmailValidation()
        assert result.valid == []
        assert result.all_valid is True
