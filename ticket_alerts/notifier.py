"""
Overdue notification pipeline.

Filters a batch of tickets down to the overdue ones and, when enough of
them are overdue, hands them to an alert sender. Isolated overdue tickets
below the configured threshold are not worth an email and are reported as
a successful no-op.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol, Sequence

from .config import AlertConfig
from .models import NotificationResult, OverdueTicket, Ticket
from .overdue import OverdueClassifier


logger = logging.getLogger(__name__)


class AlertSender(Protocol):
    """Anything that can deliver an overdue alert."""

    def send_overdue_alert(
        self,
        overdue_tickets: list[OverdueTicket],
        recipients: list[str],
        file_name: str,
    ) -> str:
        """Deliver the alert and return a confirmation message; raise on failure."""
        ...


class OverdueNotifier:
    """
    Sends overdue alerts for ticket batches.

    The notifier never raises for sender failures: they are turned into
    a failed NotificationResult.
    """

    def __init__(
        self,
        config: AlertConfig,
        sender: AlertSender,
        classifier: Optional[OverdueClassifier] = None,
    ):
        """
        Initialize the notifier.

        Args:
            config: Alert configuration (recipients, send threshold, thresholds).
            sender: Collaborator that delivers the alert.
            classifier: Optional classifier override; built from config otherwise.
        """
        self._config = config
        self._sender = sender
        self._classifier = classifier or OverdueClassifier(
            config.thresholds,
            config.closed_statuses,
        )

    def notify(
        self,
        tickets: Sequence[Ticket],
        file_name: str,
        recipients: Optional[Sequence[str]] = None,
        now: Optional[datetime] = None,
    ) -> NotificationResult:
        """
        Classify a batch and alert on its overdue tickets.

        Args:
            tickets: Tickets to check.
            file_name: Name of the source export, quoted in the alert.
            recipients: Custom recipients replacing the configured ones.
            now: Current instant (defaults to local time).

        Returns:
            NotificationResult describing what happened.
        """
        try:
            overdue = self._classifier.filter_overdue(tickets, now)
            threshold = self._config.send_threshold

            logger.info(
                f"{len(overdue)} of {len(tickets)} tickets overdue in {file_name}"
            )

            if len(overdue) < threshold:
                return NotificationResult(
                    success=True,
                    message=(
                        f"No email sent - only {len(overdue)} overdue tickets "
                        f"(threshold: {threshold})"
                    ),
                    overdue_count=len(overdue),
                )

            to = list(recipients) if recipients is not None else list(self._config.recipients)

            message = self._sender.send_overdue_alert(overdue, to, file_name)

            logger.info(f"Overdue alert sent for {len(overdue)} tickets: {message}")
            return NotificationResult(
                success=True,
                message=message,
                overdue_count=len(overdue),
            )

        except Exception as e:
            logger.error(f"Error sending overdue tickets email: {e}")
            return NotificationResult(
                success=False,
                message=f"Failed to send email: {str(e) or type(e).__name__}",
                overdue_count=0,
            )
