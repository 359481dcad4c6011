"""
Configuration module for the Overdue Ticket Alert System.

Handles all configuration through environment variables with secure defaults.
Never stores sensitive data directly in code.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .models import SeverityThresholds, ThresholdTable


# Load environment variables from .env file
load_dotenv()


logger = logging.getLogger(__name__)


DEFAULT_CLOSED_STATUSES: tuple[str, ...] = ("fermé", "closed", "clot", "résolu")


def _split_list(raw: str) -> tuple[str, ...]:
    """Split a comma separated environment value into trimmed entries."""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _int_env(name: str, default: int) -> int:
    """Integer environment value; an unparseable value falls back to ``default``."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _load_threshold_table() -> ThresholdTable:
    """
    Build the severity threshold table, applying SEVERITY_THRESHOLDS overrides.

    The override is a JSON object keyed by severity code, e.g.
    ``{"1": {"warning": 2, "critical": 6, "severe": 12}}``. The key
    ``"default"`` replaces the fallback band.
    """
    table = ThresholdTable()
    raw = os.getenv("SEVERITY_THRESHOLDS", "").strip()
    if not raw:
        return table

    try:
        overrides = json.loads(raw)
        if not isinstance(overrides, dict):
            raise TypeError("expected a JSON object keyed by severity")

        by_severity = dict(table.by_severity)
        default = table.default
        for severity, values in overrides.items():
            thresholds = SeverityThresholds.model_validate(values)
            if severity == "default":
                default = thresholds
            else:
                by_severity[str(severity)] = thresholds
    except (TypeError, ValueError, ValidationError) as e:
        logger.warning(f"Ignoring invalid SEVERITY_THRESHOLDS: {e}")
        return table

    return ThresholdTable(by_severity=by_severity, default=default)


@dataclass(frozen=True)
class EmailConfig:
    """
    Configuration for email sending via SMTP.

    Designed for Gmail with App Password authentication.
    """

    # SMTP settings
    smtp_host: str = field(
        default_factory=lambda: os.getenv("SMTP_HOST", "smtp.gmail.com")
    )
    smtp_port: int = field(
        default_factory=lambda: _int_env("SMTP_PORT", 587)
    )
    smtp_username: str = field(
        default_factory=lambda: os.getenv("SMTP_USERNAME", "")
    )
    smtp_password: str = field(
        default_factory=lambda: os.getenv("SMTP_PASSWORD", "")
    )
    smtp_use_tls: bool = field(
        default_factory=lambda: os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    )

    # Sender settings
    from_email: str = field(
        default_factory=lambda: os.getenv("FROM_EMAIL", "")
    )
    from_name: str = field(
        default_factory=lambda: os.getenv("FROM_NAME", "Clarify Ticket System")
    )

    def missing_settings(self) -> list[str]:
        """Names of the SMTP settings required to send that are not set."""
        required = {
            "SMTP_HOST": self.smtp_host,
            "SMTP_USERNAME": self.smtp_username,
            "SMTP_PASSWORD": self.smtp_password,
        }
        return [name for name, value in required.items() if not value]


@dataclass(frozen=True)
class AlertConfig:
    """Configuration for overdue classification and alert dispatch."""

    recipients: tuple[str, ...] = field(
        default_factory=lambda: _split_list(
            os.getenv("OVERDUE_ALERT_RECIPIENTS", "")
        )
    )

    # Send an alert only when at least this many tickets are overdue
    send_threshold: int = field(
        default_factory=lambda: _int_env("OVERDUE_SEND_THRESHOLD", 1)
    )

    thresholds: ThresholdTable = field(default_factory=_load_threshold_table)

    closed_statuses: tuple[str, ...] = DEFAULT_CLOSED_STATUSES

    # Optional HTTP relay that sends the email on our behalf
    relay_url: Optional[str] = field(
        default_factory=lambda: os.getenv("ALERT_RELAY_URL") or None
    )

    # Request timeout in seconds
    request_timeout: int = field(
        default_factory=lambda: _int_env("REQUEST_TIMEOUT", 30)
    )


@dataclass(frozen=True)
class OutputConfig:
    """Configuration for output files."""

    output_dir: Path = field(
        default_factory=lambda: Path(os.getenv("OUTPUT_DIR", "./output"))
    )
    report_filename: str = field(
        default_factory=lambda: os.getenv(
            "REPORT_FILENAME",
            "overdue_tickets_report.xlsx"
        )
    )
    analytics_filename: str = field(
        default_factory=lambda: os.getenv(
            "ANALYTICS_FILENAME",
            "tickets_analytics_report.xlsx"
        )
    )

    @property
    def report_path(self) -> Path:
        """Get full path to the overdue report file."""
        return self.output_dir / self.report_filename

    @property
    def analytics_path(self) -> Path:
        """Get full path to the analytics report file."""
        return self.output_dir / self.analytics_filename


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration aggregating all config sections."""

    email: EmailConfig = field(default_factory=EmailConfig)
    alert: AlertConfig = field(default_factory=AlertConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Logging level
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO")
    )

    def validate(self, use_relay: bool = False) -> list[str]:
        """
        Validate configuration and return list of errors.

        Args:
            use_relay: Validate for sending through the HTTP relay
                instead of SMTP.

        Returns:
            List of validation error messages (empty if valid).
        """
        errors = []

        if not self.alert.recipients:
            errors.append("OVERDUE_ALERT_RECIPIENTS is required")
        if self.alert.send_threshold < 1:
            errors.append("OVERDUE_SEND_THRESHOLD must be at least 1")

        if use_relay:
            if not self.alert.relay_url:
                errors.append("ALERT_RELAY_URL is required for relay delivery")
            return errors

        for name in self.email.missing_settings():
            errors.append(f"{name} is required")
        if not self.email.from_email:
            errors.append("FROM_EMAIL is required for sending emails")

        return errors


def get_config() -> AppConfig:
    """
    Get application configuration.

    Returns:
        AppConfig instance with all settings loaded from environment.
    """
    return AppConfig()
