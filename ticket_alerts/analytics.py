"""
Aggregate analytics over ticket batches.

Produces the global dashboard figures: totals, per-source and per-month
breakdowns, per-client activity with a risk score, and overdue counts.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .models import OverdueLevel, Ticket, TicketSource
from .overdue import OverdueClassifier, align_datetime, count_by_level


logger = logging.getLogger(__name__)


# Clients whose share of incidents exceeds this are flagged as at risk
RISK_SCORE_THRESHOLD = 70.0
TOP_CLIENTS_LIMIT = 15
RISK_CLIENTS_LIMIT = 5


class AnalyticsFilters(BaseModel):
    """Filters applied before aggregating."""

    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    sources: list[TicketSource] = Field(default_factory=list)
    clients: list[str] = Field(default_factory=list)
    search: str = ""

    def matches(self, ticket: Ticket) -> bool:
        """Check whether a ticket passes every filter; undated tickets pass the date range."""
        created = ticket.created_at
        if created is not None:
            if self.date_start and created < align_datetime(self.date_start, created):
                return False
            if self.date_end and created > align_datetime(self.date_end, created):
                return False
        if self.sources and ticket.source not in self.sources:
            return False
        if self.clients and ticket.client not in self.clients:
            return False
        if self.search:
            needle = self.search.lower()
            return any(needle in value.lower() for value in (ticket.id, ticket.client))
        return True


class ClientAnalytics(BaseModel):
    """Activity figures for one client."""

    name: str
    total_tickets: int = 0
    incidents: int = 0
    changes: int = 0
    clarify_tickets: int = 0
    jira_tickets: int = 0
    itsm_change_tickets: int = 0
    itsm_incident_tickets: int = 0
    last_activity: Optional[datetime] = None
    risk_score: float = 0.0


class MonthlyCount(BaseModel):
    """Ticket counts for one calendar month (``YYYY-MM``)."""

    month: str
    total: int = 0
    incidents: int = 0
    changes: int = 0
    by_source: dict[TicketSource, int] = Field(default_factory=dict)


class ActivePeriod(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class PerformanceMetrics(BaseModel):
    incident_rate: float = 0.0
    change_rate: float = 0.0
    avg_tickets_per_client: float = 0.0


class GlobalAnalytics(BaseModel):
    """Aggregated figures for a filtered ticket batch."""

    total_tickets: int
    total_incidents: int
    total_changes: int
    total_clients: int
    active_period: ActivePeriod
    by_source: dict[TicketSource, int]
    by_month: list[MonthlyCount]
    by_status: dict[str, int]
    by_priority: dict[str, int]
    client_analytics: list[ClientAnalytics]
    top_clients: list[ClientAnalytics]
    risk_clients: list[ClientAnalytics]
    performance_metrics: PerformanceMetrics
    overdue_by_level: dict[OverdueLevel, int]


def _client_breakdown(tickets: Sequence[Ticket]) -> list[ClientAnalytics]:
    """Group tickets by case-insensitive client name, busiest client first."""
    clients: dict[str, ClientAnalytics] = {}
    source_counters = {
        TicketSource.CLARIFY: "clarify_tickets",
        TicketSource.JIRA: "jira_tickets",
        TicketSource.ITSM_CHANGE: "itsm_change_tickets",
        TicketSource.ITSM_INCIDENT: "itsm_incident_tickets",
    }

    for ticket in tickets:
        key = ticket.client.lower()
        client = clients.setdefault(key, ClientAnalytics(name=ticket.client))
        client.total_tickets += 1

        if ticket.created_at and (
            client.last_activity is None or ticket.created_at > client.last_activity
        ):
            client.last_activity = ticket.created_at

        counter = source_counters[ticket.source]
        setattr(client, counter, getattr(client, counter) + 1)
        if ticket.source.is_incident:
            client.incidents += 1
        else:
            client.changes += 1

        client.risk_score = min(
            100.0, client.incidents / max(client.total_tickets, 1) * 100
        )

    return sorted(clients.values(), key=lambda c: c.total_tickets, reverse=True)


def _monthly_breakdown(tickets: Sequence[Ticket]) -> list[MonthlyCount]:
    months: dict[str, MonthlyCount] = {}
    for ticket in tickets:
        if not ticket.created_at:
            continue
        key = ticket.created_at.strftime("%Y-%m")
        month = months.setdefault(key, MonthlyCount(month=key))
        month.total += 1
        month.by_source[ticket.source] = month.by_source.get(ticket.source, 0) + 1
        if ticket.source.is_incident:
            month.incidents += 1
        else:
            month.changes += 1
    return [months[key] for key in sorted(months)]


def calculate_analytics(
    tickets: Sequence[Ticket],
    filters: Optional[AnalyticsFilters] = None,
    now: Optional[datetime] = None,
    classifier: Optional[OverdueClassifier] = None,
) -> GlobalAnalytics:
    """
    Compute global analytics for a ticket batch.

    Args:
        tickets: All loaded tickets.
        filters: Optional filters applied first.
        now: Current instant for overdue classification.
        classifier: Optional classifier override.

    Returns:
        GlobalAnalytics for the filtered tickets.
    """
    filters = filters or AnalyticsFilters()
    classifier = classifier or OverdueClassifier()
    filtered = [t for t in tickets if filters.matches(t)]

    total = len(filtered)
    incidents = sum(1 for t in filtered if t.source.is_incident)
    changes = total - incidents

    client_analytics = _client_breakdown(filtered)
    total_clients = len(client_analytics)

    by_status: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    for ticket in filtered:
        if ticket.source in (TicketSource.CLARIFY, TicketSource.JIRA):
            by_status[ticket.status] = by_status.get(ticket.status, 0) + 1
            by_priority[ticket.priority] = by_priority.get(ticket.priority, 0) + 1

    dates = [t.created_at for t in filtered if t.created_at]

    logger.debug(f"Analytics over {total} of {len(tickets)} tickets")

    return GlobalAnalytics(
        total_tickets=total,
        total_incidents=incidents,
        total_changes=changes,
        total_clients=total_clients,
        active_period=ActivePeriod(
            start=min(dates) if dates else None,
            end=max(dates) if dates else None,
        ),
        by_source={
            source: sum(1 for t in filtered if t.source == source)
            for source in TicketSource
        },
        by_month=_monthly_breakdown(filtered),
        by_status=by_status,
        by_priority=by_priority,
        client_analytics=client_analytics,
        top_clients=client_analytics[:TOP_CLIENTS_LIMIT],
        risk_clients=[
            c for c in client_analytics if c.risk_score > RISK_SCORE_THRESHOLD
        ][:RISK_CLIENTS_LIMIT],
        performance_metrics=PerformanceMetrics(
            incident_rate=incidents / total * 100 if total else 0.0,
            change_rate=changes / total * 100 if total else 0.0,
            avg_tickets_per_client=total / total_clients if total_clients else 0.0,
        ),
        overdue_by_level=count_by_level(classifier.filter_overdue(filtered, now)),
    )
