"""
Data models for the Overdue Ticket Alert System.

Uses Pydantic for robust data validation and serialization.
Result models are immutable so they can be shared between the
reporting and notification layers.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class TicketSource(str, Enum):
    """External ticketing system a ticket was exported from."""

    CLARIFY = "clarify"
    JIRA = "jira"
    ITSM_CHANGE = "itsm-change"
    ITSM_INCIDENT = "itsm-incident"

    @property
    def is_incident(self) -> bool:
        """Clarify cases and ITSM incidents count as incidents; the rest are changes."""
        return self in (TicketSource.CLARIFY, TicketSource.ITSM_INCIDENT)


class OverdueLevel(str, Enum):
    """Urgency classification of a ticket."""

    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"
    SEVERE = "severe"
    STAGNANT = "stagnant"


class Ticket(BaseModel):
    """
    A single ticket exported from an external ticketing system.

    ``status``, ``severity``, ``priority``, ``ticket_type``, the
    timestamps and ``closed_at`` take part in overdue classification
    (which of them depends on the source); the remaining fields are
    descriptive and used for reporting.

    Dumps ``by_alias`` use the camelCase keys of the alert relay.
    """

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    id: str = Field(..., description="Ticket identifier in the source system")
    source: TicketSource = Field(default=TicketSource.CLARIFY)
    client: str = Field(default="", description="Customer or organisation")
    status: str = Field(default="", description="Free-text status")
    severity: str = Field(default="", description="Severity code, usually 1-3")
    priority: str = Field(default="")
    ticket_type: str = Field(default="", description="Issue type, Jira only")
    created_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    incident_start_date: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    owner: str = Field(default="")
    region: str = Field(default="")
    company: str = Field(default="")
    city: str = Field(default="")
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator("severity", "status", "priority", "ticket_type", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Spreadsheet cells may hold numbers; keep codes as text."""
        if v is None:
            return ""
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return str(v).strip()


class OverdueInfo(BaseModel):
    """
    Overdue classification result for one ticket.

    A ticket that is not overdue always carries level ``none`` and
    zero magnitudes.
    """

    is_overdue: bool = False
    level: OverdueLevel = OverdueLevel.NONE
    hours_overdue: int = Field(default=0, ge=0)
    days_overdue: int = Field(default=0, ge=0)

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}

    @model_validator(mode="after")
    def check_not_overdue_is_empty(self) -> "OverdueInfo":
        """Enforce the not-overdue invariant."""
        if not self.is_overdue and (
            self.level != OverdueLevel.NONE
            or self.hours_overdue
            or self.days_overdue
        ):
            raise ValueError(
                "A ticket that is not overdue must have level 'none' and zero magnitudes"
            )
        if self.is_overdue and self.level == OverdueLevel.NONE:
            raise ValueError("An overdue ticket needs a level other than 'none'")
        return self

    @classmethod
    def not_overdue(cls) -> "OverdueInfo":
        """The all-zero result."""
        return cls()

    def describe(self) -> str:
        """Human readable magnitude, in days when at least one full day."""
        if self.days_overdue > 0:
            return f"{self.days_overdue} days overdue"
        return f"{self.hours_overdue} hours overdue"


class OverdueTicket(BaseModel):
    """A ticket paired with its overdue classification."""

    ticket: Ticket
    overdue_info: OverdueInfo

    model_config = {"frozen": True}


class SeverityThresholds(BaseModel):
    """Hour thresholds for the warning, critical and severe bands."""

    warning: int = Field(..., ge=0)
    critical: int = Field(..., ge=0)
    severe: int = Field(..., ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_ordering(self) -> "SeverityThresholds":
        """Bands must not decrease."""
        if not self.warning <= self.critical <= self.severe:
            raise ValueError("Thresholds must satisfy warning <= critical <= severe")
        return self


def _default_severity_thresholds() -> dict[str, SeverityThresholds]:
    return {
        "1": SeverityThresholds(warning=4, critical=12, severe=24),
        "2": SeverityThresholds(warning=8, critical=24, severe=48),
        "3": SeverityThresholds(warning=24, critical=72, severe=168),
    }


class ThresholdTable(BaseModel):
    """
    Band key to threshold lookup.

    Keys are Clarify severity codes by default; other sources key bands
    by priority. Keys are matched exactly; anything not listed uses
    ``default``.
    """

    by_severity: dict[str, SeverityThresholds] = Field(
        default_factory=_default_severity_thresholds
    )
    default: SeverityThresholds = Field(
        default_factory=lambda: SeverityThresholds(warning=48, critical=168, severe=336)
    )

    model_config = {"frozen": True}

    def for_severity(self, severity: str) -> SeverityThresholds:
        """Get the thresholds that apply to a severity code."""
        return self.by_severity.get(severity, self.default)


class NotificationResult(BaseModel):
    """Outcome of an overdue notification run."""

    success: bool
    message: str
    overdue_count: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class EmailValidation(BaseModel):
    """Candidate recipients split into valid and invalid addresses."""

    valid: list[str] = Field(default_factory=list)
    invalid: list[str] = Field(default_factory=list)

    @property
    def all_valid(self) -> bool:
        return not self.invalid
