"""Tests for configuration module."""

import os
from unittest.mock import patch

import pytest

from ticket_alerts.config import (
    AlertConfig,
    AppConfig,
    EmailConfig,
    OutputConfig,
    get_config,
)
from ticket_alerts.models import SeverityThresholds


class TestEmailConfig:
    """Tests for EmailConfig."""

    def test_default_smtp_settings(self):
        """Test default Gmail SMTP settings."""
        with patch.dict(os.environ, {}, clear=True):
            config = EmailConfig()
        assert config.smtp_host == "smtp.gmail.com"
        assert config.smtp_port == 587
        assert config.smtp_use_tls is True

    def test_missing_settings(self):
        """Test required SMTP settings are reported."""
        config = EmailConfig(smtp_username="", smtp_password="")
        assert config.missing_settings() == ["SMTP_USERNAME", "SMTP_PASSWORD"]

    def test_env_override(self):
        """Test environment variable override."""
        with patch.dict(os.environ, {"SMTP_PORT": "465", "SMTP_USE_TLS": "false"}):
            config = EmailConfig()
        assert config.smtp_port == 465
        assert config.smtp_use_tls is False


class TestAlertConfig:
    """Tests for AlertConfig."""

    def test_defaults(self):
        """Test defaults without environment."""
        with patch.dict(os.environ, {}, clear=True):
            config = AlertConfig()
        assert config.recipients == ()
        assert config.send_threshold == 1
        assert config.relay_url is None
        assert "fermé" in config.closed_statuses
        assert config.thresholds.for_severity("1").warning == 4

    def test_recipients_from_env(self):
        """Test comma separated recipients."""
        with patch.dict(os.environ, {"OVERDUE_ALERT_RECIPIENTS": " a@b.co, ,c@d.fr "}):
            config = AlertConfig()
        assert config.recipients == ("a@b.co", "c@d.fr")

    def test_threshold_override_from_env(self):
        """Test SEVERITY_THRESHOLDS overrides single bands."""
        overrides = '{"1": {"warning": 2, "critical": 6, "severe": 12}, "default": {"warning": 24, "critical": 48, "severe": 96}}'
        with patch.dict(os.environ, {"SEVERITY_THRESHOLDS": overrides}):
            config = AlertConfig()
        table = config.thresholds
        assert table.for_severity("1") == SeverityThresholds(warning=2, critical=6, severe=12)
        assert table.for_severity("2").warning == 8
        assert table.for_severity("x").warning == 24

    def test_invalid_threshold_json_ignored(self):
        """Test malformed SEVERITY_THRESHOLDS falls back to defaults."""
        with patch.dict(os.environ, {"SEVERITY_THRESHOLDS": "{not json"}):
            config = AlertConfig()
        assert config.thresholds.for_severity("1").warning == 4

    @pytest.mark.parametrize(
        "raw",
        [
            '{"1": {"warning": 2}}',
            '{"1": 5}',
            '[1, 2, 3]',
            '{"1": {"warning": 10, "critical": 5, "severe": 20}}',
        ],
    )
    def test_invalid_threshold_values_ignored(self, raw):
        """Test structurally invalid overrides fall back to defaults."""
        with patch.dict(os.environ, {"SEVERITY_THRESHOLDS": raw}):
            config = AlertConfig()
        assert config.thresholds.for_severity("1") == SeverityThresholds(warning=4, critical=12, severe=24)

    def test_invalid_integers_use_defaults(self):
        """Test non-numeric integer settings fall back to defaults."""
        with patch.dict(os.environ, {"OVERDUE_SEND_THRESHOLD": "many", "REQUEST_TIMEOUT": "soon"}):
            config = AlertConfig()
        assert config.send_threshold == 1
        assert config.request_timeout == 30


class TestOutputConfig:
    """Tests for OutputConfig."""

    def test_report_paths(self):
        """Test report path properties."""
        with patch.dict(os.environ, {}, clear=True):
            config = OutputConfig()
        assert config.report_path.name == "overdue_tickets_report.xlsx"
        assert config.analytics_path.name == "tickets_analytics_report.xlsx"


class TestAppConfig:
    """Tests for AppConfig."""

    def test_validate_missing_recipients(self):
        """Test validation catches missing recipients."""
        config = AppConfig(alert=AlertConfig(recipients=()))
        errors = config.validate()
        assert any("OVERDUE_ALERT_RECIPIENTS" in e for e in errors)

    def test_validate_missing_smtp_password(self):
        """Test validation catches missing SMTP password."""
        config = AppConfig(
            email=EmailConfig(smtp_username="test@gmail.com", smtp_password=""),
            alert=AlertConfig(recipients=("ops@example.com",)),
        )
        errors = config.validate()
        assert any("SMTP_PASSWORD" in e for e in errors)

    def test_validate_relay_needs_url(self):
        """Test relay delivery requires ALERT_RELAY_URL but not SMTP."""
        config = AppConfig(
            email=EmailConfig(smtp_username="", smtp_password=""),
            alert=AlertConfig(recipients=("ops@example.com",), relay_url=None),
        )
        errors = config.validate(use_relay=True)
        assert errors == ["ALERT_RELAY_URL is required for relay delivery"]

    def test_validate_all_valid(self):
        """Test validation passes with all required fields."""
        config = AppConfig(
            email=EmailConfig(
                smtp_username="test@gmail.com",
                smtp_password="app-password",
                from_email="test@gmail.com",
            ),
            alert=AlertConfig(recipients=("ops@example.com",), send_threshold=1),
        )
        assert config.validate() == []


class TestGetConfig:
    """Tests for get_config function."""

    def test_returns_app_config(self):
        """Test get_config returns AppConfig instance."""
        config = get_config()
        assert isinstance(config, AppConfig)
