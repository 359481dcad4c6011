"""
Per-source overdue rules.

Each ticketing system has its own threshold bands, closed-status
vocabulary and stagnation delay:
- Clarify bands are keyed by severity code (1-3)
- Jira bands are keyed by ticket type group and normalised priority
- ITSM bands are keyed by priority (P1-P3), separately for incidents
  and change requests
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .config import DEFAULT_CLOSED_STATUSES
from .models import SeverityThresholds, ThresholdTable, Ticket, TicketSource


CLARIFY_STAGNATION_HOURS = 24
JIRA_STAGNATION_HOURS = 72
ITSM_INCIDENT_STAGNATION_HOURS = 48
ITSM_CHANGE_STAGNATION_HOURS = 72

JIRA_CLOSED_STATUSES: tuple[str, ...] = (
    "fermé", "closed", "résolu", "resolved", "terminé", "done", "completed",
    "clos", "annulé", "cancelled", "rejected", "rejeté", "delivered", "déployé",
    "testing", "test", "review", "code review", "peer review", "deployed",
    "live", "production", "released", "shipped", "verified", "accepted",
)

ITSM_CLOSED_STATUSES: tuple[str, ...] = (
    "fermé", "closed", "résolu", "resolved", "terminé", "completed",
    "clos", "annulé", "cancelled", "rejected", "rejeté",
    "en attente de fermeture", "waiting for closure",
    "implementation completed", "implémentation terminée",
)

JIRA_PRIORITY_ALIASES: dict[str, tuple[str, ...]] = {
    "highest": ("highest", "très haute", "très élevée", "blocker", "bloquant"),
    "critical": ("critical", "critique", "urgent"),
    "high": ("high", "haute", "élevée", "major", "majeur"),
    "medium": ("medium", "moyenne", "normal", "normale", "minor", "mineur"),
    "low": ("low", "basse", "faible", "trivial", "triviale"),
}

# Ticket types answered on the faster band set
JIRA_FAST_TYPES = frozenset({"bug", "story", "epic"})


def _bands(warning: int, critical: int, severe: int) -> SeverityThresholds:
    return SeverityThresholds(warning=warning, critical=critical, severe=severe)


JIRA_THRESHOLDS = ThresholdTable(
    by_severity={
        "fast:highest": _bands(4, 12, 24),
        "fast:critical": _bands(4, 12, 24),
        "fast:high": _bands(12, 24, 72),
        "fast:medium": _bands(24, 72, 168),
        "fast:low": _bands(72, 168, 336),
        "regular:highest": _bands(8, 24, 48),
        "regular:critical": _bands(8, 24, 48),
        "regular:high": _bands(24, 48, 120),
        "regular:medium": _bands(48, 120, 240),
        "regular:low": _bands(120, 240, 480),
    },
    default=_bands(48, 120, 240),
)

# Unknown ITSM priorities are treated as P3
ITSM_INCIDENT_THRESHOLDS = ThresholdTable(
    by_severity={
        "P1": _bands(2, 4, 8),
        "P2": _bands(8, 24, 48),
        "P3": _bands(24, 72, 168),
    },
    default=_bands(24, 72, 168),
)

ITSM_CHANGE_THRESHOLDS = ThresholdTable(
    by_severity={
        "P1": _bands(8, 24, 72),
        "P2": _bands(24, 72, 168),
        "P3": _bands(72, 168, 336),
    },
    default=_bands(72, 168, 336),
)


def normalize_jira_priority(priority: str) -> str:
    """Map a French or English Jira priority to highest..low (default medium)."""
    value = (priority or "").strip().lower()
    for standard, aliases in JIRA_PRIORITY_ALIASES.items():
        if value in aliases:
            return standard
    return "medium"


def normalize_jira_type(ticket_type: str) -> str:
    """Map a Jira issue type to bug, story, epic, task, subtask or other."""
    value = (ticket_type or "").strip().lower()
    if "bug" in value or "défaut" in value or "bogue" in value:
        return "bug"
    if "story" in value or "histoire" in value:
        return "story"
    if "epic" in value or "épique" in value:
        return "epic"
    if "task" in value or "tâche" in value:
        return "task"
    if "subtask" in value:
        return "subtask"
    if "incident" in value:
        return "bug"
    return "other"


def _severity_key(ticket: Ticket) -> str:
    return ticket.severity


def _jira_key(ticket: Ticket) -> str:
    group = "fast" if normalize_jira_type(ticket.ticket_type) in JIRA_FAST_TYPES else "regular"
    return f"{group}:{normalize_jira_priority(ticket.priority)}"


def _itsm_key(ticket: Ticket) -> str:
    return ticket.priority.strip().upper()


@dataclass(frozen=True)
class SourcePolicy:
    """Overdue rules for one ticketing system."""

    thresholds: ThresholdTable
    closed_statuses: frozenset[str]
    stagnation_hours: int
    band_key: Callable[[Ticket], str]

    # A resolution date alone marks the ticket closed
    closed_when_resolved: bool = False

    @classmethod
    def build(
        cls,
        thresholds: ThresholdTable,
        closed_statuses: Iterable[str],
        stagnation_hours: int,
        band_key: Callable[[Ticket], str],
        closed_when_resolved: bool = False,
    ) -> "SourcePolicy":
        return cls(
            thresholds=thresholds,
            closed_statuses=frozenset(s.strip().lower() for s in closed_statuses),
            stagnation_hours=stagnation_hours,
            band_key=band_key,
            closed_when_resolved=closed_when_resolved,
        )

    def thresholds_for(self, ticket: Ticket) -> SeverityThresholds:
        """Band that applies to a ticket."""
        return self.thresholds.for_severity(self.band_key(ticket))

    def is_closed(self, ticket: Ticket) -> bool:
        """Check the status (case-insensitive) and, if enabled, the resolution date."""
        if (ticket.status or "").strip().lower() in self.closed_statuses:
            return True
        return self.closed_when_resolved and ticket.closed_at is not None


def default_policies(
    clarify_thresholds: Optional[ThresholdTable] = None,
    clarify_closed_statuses: Iterable[str] = DEFAULT_CLOSED_STATUSES,
) -> dict[TicketSource, SourcePolicy]:
    """
    Standard policy per source.

    Args:
        clarify_thresholds: Clarify severity table (configurable through
            SEVERITY_THRESHOLDS).
        clarify_closed_statuses: Clarify closed-status vocabulary.
    """
    return {
        TicketSource.CLARIFY: SourcePolicy.build(
            clarify_thresholds or ThresholdTable(),
            clarify_closed_statuses,
            CLARIFY_STAGNATION_HOURS,
            _severity_key,
        ),
        TicketSource.JIRA: SourcePolicy.build(
            JIRA_THRESHOLDS,
            JIRA_CLOSED_STATUSES,
            JIRA_STAGNATION_HOURS,
            _jira_key,
        ),
        TicketSource.ITSM_INCIDENT: SourcePolicy.build(
            ITSM_INCIDENT_THRESHOLDS,
            ITSM_CLOSED_STATUSES,
            ITSM_INCIDENT_STAGNATION_HOURS,
            _itsm_key,
            closed_when_resolved=True,
        ),
        TicketSource.ITSM_CHANGE: SourcePolicy.build(
            ITSM_CHANGE_THRESHOLDS,
            ITSM_CLOSED_STATUSES,
            ITSM_CHANGE_STAGNATION_HOURS,
            _itsm_key,
        ),
    }
