"""
Overdue classifier for the Overdue Ticket Alert System.

Classifies each ticket into an urgency level from its status, timestamps and
the rules of its source system (see ``policies``). The decision is an ordered chain of rules where the first rule
that returns a result wins:

1. Missing or invalid timestamps -> not overdue
2. Closed (status, or resolution date where the source uses it) -> not overdue
3. Neither overdue by time nor stagnant -> not overdue
4. Stagnant but not overdue by time -> stagnant
5. Overdue by time -> highest threshold band reached

Because rule 5 also covers stagnant tickets, the ``stagnant`` level only
appears for tickets that have not crossed their own warning threshold.
"""

import logging
from datetime import datetime
from functools import cached_property
from typing import Callable, Iterable, Optional

from .config import DEFAULT_CLOSED_STATUSES
from .models import (
    OverdueInfo,
    OverdueLevel,
    OverdueTicket,
    SeverityThresholds,
    Ticket,
    ThresholdTable,
    TicketSource,
)
from .policies import SourcePolicy, default_policies


logger = logging.getLogger(__name__)


# Most urgent first; used for sorting reports and alert emails
LEVEL_RANK: dict[OverdueLevel, int] = {
    OverdueLevel.SEVERE: 0,
    OverdueLevel.CRITICAL: 1,
    OverdueLevel.WARNING: 2,
    OverdueLevel.STAGNANT: 3,
    OverdueLevel.NONE: 4,
}


def _whole_hours(later: datetime, earlier: datetime) -> int:
    """Whole hours between two instants, truncated toward zero."""
    return int((later - earlier).total_seconds() / 3600)


def _whole_days(later: datetime, earlier: datetime) -> int:
    """Whole days between two instants, truncated toward zero."""
    return int((later - earlier).total_seconds() / 86400)


def align_datetime(value: datetime, reference: datetime) -> datetime:
    """
    Make ``value`` comparable with ``reference``.

    A naive datetime is read in the timezone of the aware one, so a
    naive spreadsheet date can be compared with an aware ``now``.
    """
    value_aware = value.tzinfo is not None
    reference_aware = reference.tzinfo is not None
    if value_aware == reference_aware:
        return value
    if reference_aware:
        return value.replace(tzinfo=reference.tzinfo)
    return value.astimezone().replace(tzinfo=None)


class _Evaluation:
    """Per-call state shared by the rules; measurements are computed once."""

    def __init__(self, ticket: Ticket, now: datetime, policy: SourcePolicy):
        self.ticket = ticket
        self.now = now
        self.policy = policy
        self.thresholds: SeverityThresholds = policy.thresholds_for(ticket)
        self.stagnation_hours = policy.stagnation_hours

    @property
    def has_valid_dates(self) -> bool:
        return isinstance(self.ticket.created_at, datetime) and isinstance(
            self.ticket.last_updated_at, datetime
        )

    @cached_property
    def created_at(self) -> datetime:
        return align_datetime(self.ticket.created_at, self.now)

    @cached_property
    def last_updated_at(self) -> datetime:
        return align_datetime(self.ticket.last_updated_at, self.now)

    @cached_property
    def hours_between_creation_and_update(self) -> int:
        return _whole_hours(self.last_updated_at, self.created_at)

    @cached_property
    def max_hours(self) -> int:
        return max(
            _whole_hours(self.now, self.created_at),
            _whole_hours(self.now, self.last_updated_at),
        )

    @cached_property
    def max_days(self) -> int:
        return max(
            _whole_days(self.now, self.created_at),
            _whole_days(self.now, self.last_updated_at),
        )

    @property
    def is_stagnant(self) -> bool:
        return self.hours_between_creation_and_update > self.stagnation_hours

    @property
    def is_overdue_by_time(self) -> bool:
        return self.max_hours >= self.thresholds.warning


Rule = Callable[[_Evaluation], Optional[OverdueInfo]]


class OverdueClassifier:
    """
    Threshold-based overdue classifier.

    Stateless apart from its configuration: every call to ``classify``
    recomputes the result from the ticket and the current time.
    """

    def __init__(
        self,
        thresholds: Optional[ThresholdTable] = None,
        closed_statuses: Iterable[str] = DEFAULT_CLOSED_STATUSES,
        policies: Optional[dict[TicketSource, SourcePolicy]] = None,
    ):
        """
        Initialize the classifier.

        Args:
            thresholds: Clarify severity table (defaults to the standard table).
            closed_statuses: Clarify statuses, compared in lower case, that are
                never overdue.
            policies: Per-source overrides of the standard policies.
        """
        self._policies = default_policies(thresholds, closed_statuses)
        if policies:
            self._policies.update(policies)
        self._rules: tuple[Rule, ...] = (
            self._rule_invalid_dates,
            self._rule_closed_status,
            self._rule_not_overdue,
            self._rule_stagnant_only,
            self._rule_time_band,
        )

    def policy_for(self, source: TicketSource) -> SourcePolicy:
        """Rules applied to tickets from ``source``."""
        return self._policies[source]

    def classify(self, ticket: Ticket, now: Optional[datetime] = None) -> OverdueInfo:
        """
        Classify a ticket.

        Args:
            ticket: The ticket to classify.
            now: Current instant (defaults to local time).

        Returns:
            OverdueInfo for the ticket. Never raises for bad ticket data.
        """
        if now is None:
            now = datetime.now()

        evaluation = _Evaluation(ticket, now, self.policy_for(ticket.source))

        for rule in self._rules:
            result = rule(evaluation)
            if result is not None:
                return result

        return OverdueInfo.not_overdue()

    def _rule_invalid_dates(self, evaluation: _Evaluation) -> Optional[OverdueInfo]:
        if not evaluation.has_valid_dates:
            logger.debug(f"Ticket {evaluation.ticket.id} has missing dates, not overdue")
            return OverdueInfo.not_overdue()
        return None

    def _rule_closed_status(self, evaluation: _Evaluation) -> Optional[OverdueInfo]:
        if evaluation.policy.is_closed(evaluation.ticket):
            return OverdueInfo.not_overdue()
        return None

    def _rule_not_overdue(self, evaluation: _Evaluation) -> Optional[OverdueInfo]:
        if not evaluation.is_overdue_by_time and not evaluation.is_stagnant:
            return OverdueInfo.not_overdue()
        return None

    def _rule_stagnant_only(self, evaluation: _Evaluation) -> Optional[OverdueInfo]:
        if evaluation.is_stagnant and not evaluation.is_overdue_by_time:
            gap = evaluation.hours_between_creation_and_update
            return OverdueInfo(
                is_overdue=True,
                level=OverdueLevel.STAGNANT,
                hours_overdue=gap,
                days_overdue=gap // 24,
            )
        return None

    def _rule_time_band(self, evaluation: _Evaluation) -> Optional[OverdueInfo]:
        thresholds = evaluation.thresholds
        max_hours = evaluation.max_hours

        if max_hours >= thresholds.severe:
            level = OverdueLevel.SEVERE
        elif max_hours >= thresholds.critical:
            level = OverdueLevel.CRITICAL
        elif max_hours >= thresholds.warning:
            level = OverdueLevel.WARNING
        else:
            return None

        return OverdueInfo(
            is_overdue=True,
            level=level,
            hours_overdue=max_hours,
            days_overdue=max(evaluation.max_days, 0),
        )

    def filter_overdue(
        self,
        tickets: Iterable[Ticket],
        now: Optional[datetime] = None,
    ) -> list[OverdueTicket]:
        """
        Keep only overdue tickets, paired with their classification.

        Input order is preserved.
        """
        if now is None:
            now = datetime.now()

        overdue = []
        for ticket in tickets:
            info = self.classify(ticket, now)
            if info.is_overdue:
                overdue.append(OverdueTicket(ticket=ticket, overdue_info=info))
        return overdue


def get_overdue_info(
    ticket: Ticket,
    now: Optional[datetime] = None,
    thresholds: Optional[ThresholdTable] = None,
) -> OverdueInfo:
    """
    Convenience function to classify a single ticket.

    Args:
        ticket: The ticket to classify.
        now: Current instant (defaults to local time).
        thresholds: Optional threshold table override.

    Returns:
        OverdueInfo for the ticket.
    """
    return OverdueClassifier(thresholds).classify(ticket, now)


def sort_by_urgency(overdue_tickets: Iterable[OverdueTicket]) -> list[OverdueTicket]:
    """
    Sort overdue tickets from most to least urgent.

    Order: level (severe, critical, warning, stagnant), then hours
    overdue descending.
    """
    return sorted(
        overdue_tickets,
        key=lambda item: (
            LEVEL_RANK[item.overdue_info.level],
            -item.overdue_info.hours_overdue,
        ),
    )


def count_by_level(overdue_tickets: Iterable[OverdueTicket]) -> dict[OverdueLevel, int]:
    """Count overdue tickets per level; every overdue level is present."""
    counts = {
        OverdueLevel.SEVERE: 0,
        OverdueLevel.CRITICAL: 0,
        OverdueLevel.WARNING: 0,
        OverdueLevel.STAGNANT: 0,
    }
    for item in overdue_tickets:
        counts[item.overdue_info.level] += 1
    return counts
