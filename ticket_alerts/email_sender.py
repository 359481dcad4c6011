"""
Email sender module for the Overdue Ticket Alert System.

Implements overdue alert delivery two ways:
- Directly via SMTP with TLS (Gmail App Passwords supported)
- Through an HTTP relay endpoint that sends the email on our behalf
"""

import html
import logging
import smtplib
from datetime import datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

import httpx

from .config import AlertConfig, EmailConfig
from .models import OverdueLevel, OverdueTicket
from .overdue import count_by_level, sort_by_urgency


logger = logging.getLogger(__name__)


class EmailSenderError(Exception):
    """Error during email sending."""
    pass


# Background and badge colours per level, shared with the Excel report
LEVEL_COLORS: dict[OverdueLevel, dict[str, str]] = {
    OverdueLevel.SEVERE: {"bg": "#7c3aed", "badge": "#a855f7"},
    OverdueLevel.CRITICAL: {"bg": "#dc2626", "badge": "#ef4444"},
    OverdueLevel.WARNING: {"bg": "#d97706", "badge": "#f59e0b"},
    OverdueLevel.STAGNANT: {"bg": "#0891b2", "badge": "#06b6d4"},
    OverdueLevel.NONE: {"bg": "#6b7280", "badge": "#9ca3af"},
}

LEVEL_ICONS: dict[OverdueLevel, str] = {
    OverdueLevel.SEVERE: "🚨",
    OverdueLevel.CRITICAL: "⚠️",
    OverdueLevel.WARNING: "⏰",
    OverdueLevel.STAGNANT: "🔄",
    OverdueLevel.NONE: "📋",
}

HIGH_PRIORITY_HEADERS = {
    "X-Priority": "1",
    "X-MSMail-Priority": "High",
    "Importance": "high",
}


class SMTPEmailSender:
    """
    SMTP-based email sender with TLS encryption.

    Designed for Gmail with App Password authentication.
    Also compatible with other SMTP providers (Outlook, etc.).

    Security:
        - Uses STARTTLS for encryption
        - Credentials loaded from environment variables
        - App Password recommended over regular password
    """

    def __init__(self, config: EmailConfig):
        """
        Initialize SMTP sender.

        Args:
            config: Email configuration with SMTP settings.
        """
        self._config = config

    def send(
        self,
        to_emails: list[str],
        subject: str,
        html_body: str,
        attachments: list[Path] | None = None,
        headers: dict[str, str] | None = None,
    ) -> bool:
        """
        Send an HTML email via SMTP with TLS.

        Args:
            to_emails: Recipient email addresses.
            subject: Email subject line.
            html_body: Email body (HTML).
            attachments: Optional list of file paths to attach.
            headers: Extra message headers.

        Returns:
            True if sent successfully.

        Raises:
            EmailSenderError: If sending fails.
        """
        logger.info(f"Sending email to {len(to_emails)} recipient(s) via SMTP")

        try:
            msg = MIMEMultipart()
            msg["From"] = f"{self._config.from_name} <{self._config.from_email}>"
            msg["To"] = ", ".join(to_emails)
            msg["Subject"] = subject
            for name, value in (headers or {}).items():
                msg[name] = value

            msg.attach(MIMEText(html_body, "html", "utf-8"))

            if attachments:
                for file_path in attachments:
                    self._attach_file(msg, file_path)

            with smtplib.SMTP(self._config.smtp_host, self._config.smtp_port) as server:
                if self._config.smtp_use_tls:
                    server.starttls()

                server.login(
                    self._config.smtp_username,
                    self._config.smtp_password
                )
                server.send_message(msg)

            logger.info(f"Email sent successfully to {', '.join(to_emails)}")
            return True

        except EmailSenderError:
            raise
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            raise EmailSenderError(
                "SMTP authentication failed. "
                "For Gmail, ensure you're using an App Password."
            ) from e
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            raise EmailSenderError(f"SMTP error: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error sending email: {e}")
            raise EmailSenderError(f"Failed to send email: {e}") from e

    def _attach_file(self, msg: MIMEMultipart, file_path: Path) -> None:
        """Attach a file to the email."""
        if not file_path.exists():
            raise EmailSenderError(f"Attachment not found: {file_path}")

        with open(file_path, "rb") as f:
            part = MIMEApplication(f.read(), Name=file_path.name)

        part["Content-Disposition"] = f'attachment; filename="{file_path.name}"'
        msg.attach(part)
        logger.debug(f"Attached file: {file_path.name}")


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y %H:%M") if value else "N/A"


def _stat_card(count: int, label: str, color: str) -> str:
    return (
        '<div class="stat-card">'
        f'<div class="stat-number" style="color: {color};">{count}</div>'
        f'<div class="stat-label">{label}</div>'
        "</div>"
    )


def _ticket_card(item: OverdueTicket) -> str:
    ticket = item.ticket
    info = item.overdue_info
    color = LEVEL_COLORS[info.level]["bg"]
    esc = html.escape

    fields = [
        ("👤 Owner", ticket.owner),
        ("🏢 Company", ticket.company or ticket.client),
        ("📍 Location", f"{ticket.city}, {ticket.region}"),
        ("📅 Created", _format_date(ticket.created_at)),
        ("🔄 Last Updated", _format_date(ticket.last_updated_at)),
        ("⚡ Status", ticket.status),
    ]
    info_items = "".join(
        '<div class="info-item">'
        f'<div class="info-label">{label}</div>'
        f'<div class="info-value">{esc(value)}</div>'
        "</div>"
        for label, value in fields
    )

    return f"""
<div class="ticket-card">
    <div class="ticket-header">
        <div class="ticket-id">{esc(ticket.id)}</div>
        <div class="badges">
            <span class="badge badge-severity-{esc(ticket.severity)}">S{esc(ticket.severity)}</span>
            <span class="badge badge-priority-{esc(ticket.priority.lower())}">{esc(ticket.priority)}</span>
        </div>
    </div>
    <div class="ticket-body">
        <div class="ticket-info">{info_items}</div>
        <div class="overdue-alert" style="background-color: {color}20; color: {color}; border-left: 4px solid {color};">
            <span style="font-size: 20px;">{LEVEL_ICONS[info.level]}</span>
            <div><strong>{info.level.value.upper()}</strong> - {info.describe()}</div>
        </div>
    </div>
</div>"""


def build_overdue_email_html(
    overdue_tickets: list[OverdueTicket],
    file_name: str,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Build the HTML body of an overdue alert.

    Args:
        overdue_tickets: Overdue tickets to list.
        file_name: Name of the source export.
        generated_at: Generation time shown in the summary (defaults to now).

    Returns:
        HTML document as a string.
    """
    generated_at = generated_at or datetime.now()
    counts = count_by_level(overdue_tickets)
    total = len(overdue_tickets)

    cards = [_stat_card(total, "Total Overdue", "#dc2626")]
    for level, label in (
        (OverdueLevel.SEVERE, "Severe Cases"),
        (OverdueLevel.CRITICAL, "Critical Cases"),
        (OverdueLevel.WARNING, "Warning Cases"),
        (OverdueLevel.STAGNANT, "Stagnant Cases"),
    ):
        if counts[level] > 0:
            cards.append(_stat_card(counts[level], label, LEVEL_COLORS[level]["bg"]))

    tickets_html = "".join(_ticket_card(item) for item in sort_by_urgency(overdue_tickets))

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Overdue Tickets Alert</title>
<style>
body {{ font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; color: #374151; background-color: #f9fafb; }}
.container {{ max-width: 800px; margin: 0 auto; background-color: #ffffff; }}
.header {{ background: #dc2626; color: white; padding: 32px; text-align: center; }}
.content {{ padding: 32px; }}
.stats-grid {{ display: flex; flex-wrap: wrap; gap: 16px; }}
.stat-card {{ padding: 20px; border: 1px solid #e5e7eb; border-radius: 12px; text-align: center; }}
.stat-number {{ font-size: 32px; font-weight: 700; }}
.ticket-card {{ border: 1px solid #e5e7eb; border-radius: 12px; margin-bottom: 16px; }}
.ticket-header {{ padding: 16px 20px; background: #f9fafb; }}
.ticket-id {{ font-family: monospace; font-weight: 600; }}
.ticket-body {{ padding: 20px; }}
.info-label {{ font-size: 12px; color: #6b7280; text-transform: uppercase; }}
.overdue-alert {{ padding: 12px 16px; border-radius: 8px; margin-top: 16px; font-weight: 600; }}
.footer {{ background: #f9fafb; padding: 24px 32px; text-align: center; color: #6b7280; }}
</style>
</head>
<body>
<div class="container">
    <div class="header">
        <h1>Overdue Tickets Alert</h1>
        <p>Critical attention required for {total} overdue tickets</p>
    </div>
    <div class="content">
        <h2>📊 Summary Report</h2>
        <div class="stats-grid">{"".join(cards)}</div>
        <p>📁 Source File: <strong>{html.escape(file_name)}</strong><br>
        📅 Generated: {generated_at.strftime("%d/%m/%Y at %H:%M")}</p>
        <h2>📋 Detailed Ticket Information</h2>
        {tickets_html}
    </div>
    <div class="footer">
        <p><strong>Clarify Ticket Management System</strong></p>
        <p>This is an automated alert generated from your ticket upload.</p>
        <p>💡 <strong>Action Required:</strong> Please review these overdue tickets and take appropriate action to resolve them promptly.</p>
    </div>
</div>
</body>
</html>
"""


def build_overdue_subject(overdue_count: int) -> str:
    """Subject line for an overdue alert."""
    return f"URGENT: {overdue_count} Overdue Tickets Detected - Action Required"


class SMTPAlertSender:
    """Delivers overdue alerts as HTML email over SMTP."""

    def __init__(self, config: EmailConfig, attachments: list[Path] | None = None):
        """
        Initialize the alert sender.

        Args:
            config: Email configuration with SMTP settings.
            attachments: Files to attach to every alert (e.g. the overdue report).
        """
        self._config = config
        self._attachments = attachments or []
        self._sender = SMTPEmailSender(config)

    def send_overdue_alert(
        self,
        overdue_tickets: list[OverdueTicket],
        recipients: list[str],
        file_name: str,
    ) -> str:
        """
        Send an overdue alert.

        Returns:
            Confirmation message.

        Raises:
            EmailSenderError: If the request is incomplete or sending fails.
        """
        if not overdue_tickets:
            raise EmailSenderError("No overdue tickets provided")
        if not recipients:
            raise EmailSenderError("No recipients provided")

        missing = self._config.missing_settings()
        if missing:
            raise EmailSenderError(
                f"Missing environment variables: {', '.join(missing)}"
            )

        self._sender.send(
            to_emails=recipients,
            subject=build_overdue_subject(len(overdue_tickets)),
            html_body=build_overdue_email_html(overdue_tickets, file_name),
            attachments=self._attachments,
            headers=HIGH_PRIORITY_HEADERS,
        )

        return f"Email sent successfully to {len(recipients)} recipient(s)"


class HTTPAlertSender:
    """
    Delivers overdue alerts through an HTTP relay.

    The relay receives ``{"overdueTickets", "recipients", "fileName"}`` as
    JSON and answers with ``{"message": ...}`` on success or
    ``{"error": ...}`` on failure.
    """

    def __init__(self, config: AlertConfig):
        """
        Initialize the relay sender.

        Args:
            config: Alert configuration with the relay URL and timeout.
        """
        if not config.relay_url:
            raise EmailSenderError("ALERT_RELAY_URL is not configured")
        self._config = config
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "HTTPAlertSender":
        """Context manager entry."""
        self._client = httpx.Client(timeout=self._config.request_timeout)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        if self._client:
            self._client.close()
            self._client = None

    @staticmethod
    def build_payload(
        overdue_tickets: list[OverdueTicket],
        recipients: list[str],
        file_name: str,
    ) -> dict:
        """JSON body posted to the relay, with camelCase keys."""
        return {
            "overdueTickets": [
                {
                    **item.ticket.model_dump(mode="json", by_alias=True),
                    "overdueInfo": item.overdue_info.model_dump(mode="json", by_alias=True),
                }
                for item in overdue_tickets
            ],
            "recipients": list(recipients),
            "fileName": file_name,
        }

    def send_overdue_alert(
        self,
        overdue_tickets: list[OverdueTicket],
        recipients: list[str],
        file_name: str,
    ) -> str:
        """
        Post an overdue alert to the relay.

        Returns:
            The relay's confirmation message.

        Raises:
            EmailSenderError: If the relay rejects the request or is unreachable.
        """
        if not self._client:
            raise RuntimeError("Client must be used within a context manager")

        logger.info(f"Posting overdue alert to {self._config.relay_url}")

        try:
            response = self._client.post(
                self._config.relay_url,
                json=self.build_payload(overdue_tickets, recipients, file_name),
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            logger.error(f"Request error posting overdue alert: {e}")
            raise EmailSenderError(f"Request failed: {e}") from e

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not isinstance(result, dict):
            result = {}

        if not response.is_success:
            raise EmailSenderError(result.get("error") or "Failed to send email")

        return result.get("message") or "Email sent"
