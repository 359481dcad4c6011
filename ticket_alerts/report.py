"""
Excel report generator for the Overdue Ticket Alert System.

Generates formatted Microsoft Excel reports with:
- Bold headers
- Fixed column widths
- Overdue tickets sorted by urgency and coloured by level
- An analytics workbook (summary, clients, raw tickets)
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .analytics import GlobalAnalytics
from .config import OutputConfig
from .email_sender import LEVEL_COLORS
from .models import OverdueLevel, OverdueTicket, Ticket
from .overdue import sort_by_urgency


logger = logging.getLogger(__name__)


class ExcelGeneratorError(Exception):
    """Error during Excel generation."""
    pass


DATE_FORMAT = "%d/%m/%Y %H:%M:%S"

# Define column configuration
OVERDUE_COLUMNS = [
    {"header": "Ticket ID", "width": 14},
    {"header": "Owner", "width": 22},
    {"header": "Severity", "width": 10},
    {"header": "Priority", "width": 12},
    {"header": "Status", "width": 16},
    {"header": "Company", "width": 28},
    {"header": "Region", "width": 16},
    {"header": "City", "width": 16},
    {"header": "Created", "width": 20},
    {"header": "Last Updated", "width": 20},
    {"header": "Hours Overdue", "width": 14},
    {"header": "Days Overdue", "width": 13},
    {"header": "Overdue Level", "width": 14},
    {"header": "Is Stagnant", "width": 12},
]

# Index (1-based) of the level column, coloured per level
LEVEL_COLUMN = 13

CLIENT_COLUMNS = [
    {"header": "Client", "width": 30},
    {"header": "Total Tickets", "width": 13},
    {"header": "Incidents", "width": 11},
    {"header": "Changes", "width": 11},
    {"header": "Clarify", "width": 10},
    {"header": "Jira", "width": 10},
    {"header": "ITSM Change", "width": 13},
    {"header": "ITSM Incident", "width": 14},
    {"header": "Risk Score", "width": 11},
    {"header": "Last Activity", "width": 14},
]

TICKET_COLUMNS = [
    {"header": "ID", "width": 16},
    {"header": "Source", "width": 14},
    {"header": "Client", "width": 30},
    {"header": "Created", "width": 14},
    {"header": "Status", "width": 16},
    {"header": "Priority", "width": 12},
]


def _format(value: Optional[datetime], pattern: str = DATE_FORMAT) -> str:
    return value.strftime(pattern) if value else "N/A"


def overdue_to_row(item: OverdueTicket) -> list[Any]:
    """
    Convert an overdue ticket to a row of values.

    Args:
        item: The overdue ticket to convert.

    Returns:
        List of cell values matching OVERDUE_COLUMNS order.
    """
    ticket = item.ticket
    info = item.overdue_info
    return [
        ticket.id,
        ticket.owner,
        f"S{ticket.severity}" if ticket.severity else "",
        ticket.priority,
        ticket.status,
        ticket.company or ticket.client,
        ticket.region,
        ticket.city,
        _format(ticket.created_at),
        _format(ticket.last_updated_at),
        info.hours_overdue,
        info.days_overdue,
        info.level.value,
        info.level == OverdueLevel.STAGNANT,
    ]


def _level_fill(level: OverdueLevel) -> PatternFill:
    color = LEVEL_COLORS[level]["badge"].lstrip("#").upper()
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


class _WorkbookWriter:
    """
    Shared styling for generated workbooks.

    Produces professional-looking sheets with:
    - Styled headers (bold, colored background)
    - Text wrapping for long content
    - Proper borders and alternating row colours
    """

    # Style configuration
    HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
    HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
    HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)

    CELL_ALIGNMENT = Alignment(vertical="top", wrap_text=True)
    CELL_BORDER = Border(
        left=Side(style="thin", color="D0D0D0"),
        right=Side(style="thin", color="D0D0D0"),
        top=Side(style="thin", color="D0D0D0"),
        bottom=Side(style="thin", color="D0D0D0"),
    )

    # Alternating row colors for readability
    ROW_FILL_ODD = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")
    ROW_FILL_EVEN = PatternFill(start_color="FFFFFF", end_color="FFFFFF", fill_type="solid")

    def __init__(self, config: OutputConfig):
        """
        Initialize the generator.

        Args:
            config: Output configuration with file paths.
        """
        self._config = config

    def _write_table(
        self,
        ws: Worksheet,
        columns: list[dict[str, Any]],
        rows: Sequence[list[Any]],
    ) -> None:
        """Write a header row and data rows, then apply widths and freeze the header."""
        for col_idx, col_config in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col_idx, value=col_config["header"])
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = self.HEADER_ALIGNMENT
            cell.border = self.CELL_BORDER
        ws.row_dimensions[1].height = 30

        for row_idx, row_data in enumerate(rows, 2):
            fill = self.ROW_FILL_ODD if row_idx % 2 == 0 else self.ROW_FILL_EVEN
            for col_idx, value in enumerate(row_data, 1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.alignment = self.CELL_ALIGNMENT
                cell.border = self.CELL_BORDER
                cell.fill = fill

        for col_idx, col_config in enumerate(columns, 1):
            column_letter = get_column_letter(col_idx)
            ws.column_dimensions[column_letter].width = col_config["width"]

        ws.freeze_panes = "A2"

    def _save(self, wb: Workbook, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(output_path)
        logger.info(f"Excel report saved to: {output_path}")
        return output_path


class OverdueReportGenerator(_WorkbookWriter):
    """Writes the overdue tickets workbook attached to alert emails."""

    def generate(self, overdue_tickets: Sequence[OverdueTicket]) -> Path:
        """
        Generate an Excel report of overdue tickets.

        Args:
            overdue_tickets: Overdue tickets with their classification.

        Returns:
            Path to the generated Excel file.

        Raises:
            ExcelGeneratorError: If report generation fails.
        """
        try:
            sorted_tickets = sort_by_urgency(overdue_tickets)
            logger.info(f"Sorted {len(sorted_tickets)} overdue tickets for report")

            wb = Workbook()
            ws = wb.active
            ws.title = "Overdue Tickets"

            self._write_table(ws, OVERDUE_COLUMNS, [overdue_to_row(t) for t in sorted_tickets])

            for row_idx, item in enumerate(sorted_tickets, 2):
                cell = ws.cell(row=row_idx, column=LEVEL_COLUMN)
                cell.fill = _level_fill(item.overdue_info.level)
                cell.font = Font(bold=True, color="FFFFFF")

            return self._save(wb, self._config.report_path)

        except Exception as e:
            logger.error(f"Failed to generate Excel report: {e}")
            raise ExcelGeneratorError(f"Report generation failed: {e}") from e


class AnalyticsReportGenerator(_WorkbookWriter):
    """Writes the analytics workbook: summary, clients and raw tickets."""

    def generate(self, analytics: GlobalAnalytics, tickets: Sequence[Ticket]) -> Path:
        """
        Generate the analytics workbook.

        Args:
            analytics: Computed analytics.
            tickets: Raw tickets for the data sheet.

        Returns:
            Path to the generated Excel file.

        Raises:
            ExcelGeneratorError: If report generation fails.
        """
        try:
            wb = Workbook()

            summary = wb.active
            summary.title = "Summary"
            self._write_table(
                summary,
                [{"header": "Metric", "width": 28}, {"header": "Value", "width": 18}],
                self._summary_rows(analytics),
            )

            clients = wb.create_sheet("Client Analytics")
            self._write_table(clients, CLIENT_COLUMNS, [
                [
                    c.name,
                    c.total_tickets,
                    c.incidents,
                    c.changes,
                    c.clarify_tickets,
                    c.jira_tickets,
                    c.itsm_change_tickets,
                    c.itsm_incident_tickets,
                    round(c.risk_score, 1),
                    _format(c.last_activity, "%d/%m/%Y"),
                ]
                for c in analytics.client_analytics
            ])

            raw = wb.create_sheet("Raw Data")
            self._write_table(raw, TICKET_COLUMNS, [
                [
                    t.id,
                    t.source.value,
                    t.client,
                    _format(t.created_at, "%d/%m/%Y"),
                    t.status or "N/A",
                    t.priority or "N/A",
                ]
                for t in tickets
            ])

            return self._save(wb, self._config.analytics_path)

        except Exception as e:
            logger.error(f"Failed to generate analytics report: {e}")
            raise ExcelGeneratorError(f"Report generation failed: {e}") from e

    @staticmethod
    def _summary_rows(analytics: GlobalAnalytics) -> list[list[Any]]:
        metrics = analytics.performance_metrics
        rows = [
            ["Total Tickets", analytics.total_tickets],
            ["Total Incidents", analytics.total_incidents],
            ["Total Changes", analytics.total_changes],
            ["Total Clients", analytics.total_clients],
            ["Incident Rate (%)", round(metrics.incident_rate, 2)],
            ["Change Rate (%)", round(metrics.change_rate, 2)],
            ["Tickets per Client", round(metrics.avg_tickets_per_client, 2)],
            ["Period Start", _format(analytics.active_period.start, "%d/%m/%Y")],
            ["Period End", _format(analytics.active_period.end, "%d/%m/%Y")],
        ]
        for level, count in analytics.overdue_by_level.items():
            rows.append([f"Overdue ({level.value})", count])
        return rows


def generate_overdue_report(
    overdue_tickets: Sequence[OverdueTicket],
    config: OutputConfig,
) -> Path:
    """
    Convenience function to generate the overdue Excel report.

    Args:
        overdue_tickets: Overdue tickets with their classification.
        config: Output configuration.

    Returns:
        Path to generated report.
    """
    return OverdueReportGenerator(config).generate(overdue_tickets)


def generate_analytics_report(
    analytics: GlobalAnalytics,
    tickets: Sequence[Ticket],
    config: OutputConfig,
) -> Path:
    """Convenience function to generate the analytics workbook."""
    return AnalyticsReportGenerator(config).generate(analytics, tickets)
