"""
Spreadsheet ingestion for the Overdue Ticket Alert System.

Reads ticket exports from the supported ticketing systems:
- Clarify case exports
- Jira issue exports (French or English headers)
- ITSM change and incident exports

Rows with problems are kept where possible; every problem is reported in
the returned error list rather than aborting the import.
"""

import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .models import Ticket, TicketSource


logger = logging.getLogger(__name__)


class IngestError(Exception):
    """Error when a ticket export cannot be read."""
    pass


# Excel stores dates as days since this epoch (1900 date system)
EXCEL_EPOCH = datetime(1899, 12, 30)

EMPTY_DATE_VALUES = ("", "null", "undefined")

ITSM_LAST_UPDATE_COLUMNS = ("Dernière IT le :", "Last Modified Date")

_DATE_PATTERNS: list[tuple[re.Pattern, tuple[str, str, str]]] = [
    (
        re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(\d{1,2}):(\d{2}):(\d{2}))?$"),
        ("day", "month", "year"),
    ),
    (
        re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:T(\d{1,2}):(\d{2}):(\d{2}))?"),
        ("year", "month", "day"),
    ),
    (
        re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})(?:\s+(\d{1,2}):(\d{2}):(\d{2}))?$"),
        ("day", "month", "year"),
    ),
]


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a spreadsheet cell into a datetime.

    Accepts datetime/date cells, Excel serial numbers, ``dd/mm/yyyy``,
    ``yyyy-mm-dd`` and ``dd-mm-yyyy`` strings with optional time, and
    anything ``datetime.fromisoformat`` understands.

    Args:
        value: Raw cell value.

    Returns:
        The parsed datetime, or None for an empty cell.

    Raises:
        ValueError: If the value is not empty but cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return EXCEL_EPOCH + timedelta(days=value)
        except (OverflowError, ValueError) as e:
            raise ValueError(f"Invalid date format: {value}") from e

    text = str(value).strip()
    if text.lower() in EMPTY_DATE_VALUES:
        return None

    for pattern, order in _DATE_PATTERNS:
        match = pattern.match(text)
        if match:
            parts = dict(zip(order, (int(g) for g in match.groups()[:3])))
            hour, minute, second = (int(g) if g else 0 for g in match.groups()[3:6])
            try:
                return datetime(
                    parts["year"], parts["month"], parts["day"], hour, minute, second
                )
            except ValueError as e:
                raise ValueError(f"Invalid date format: {text}") from e

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError(f"Unrecognised date: {text}") from e

    logger.warning(f"Date '{text}' parsed via ISO fallback")
    return parsed


@dataclass
class IngestResult:
    """Tickets read from an export plus the problems found on the way."""

    tickets: list[Ticket] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _first(row: dict[str, Any], *keys: str) -> Any:
    """First non-empty value among several possible column names."""
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _text(value: Any, default: str = "") -> str:
    if value is None or str(value).strip() == "":
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class _RowReader:
    """Reads dates from one row, collecting errors against the row number."""

    def __init__(self, row: dict[str, Any], row_index: int, source: TicketSource):
        self.row = row
        self.row_index = row_index
        self.source = source
        self.errors: list[str] = []

    def date(self, *keys: str, required: bool = True) -> Optional[datetime]:
        value = _first(self.row, *keys)
        field_name = keys[0]
        try:
            parsed = parse_date(value)
        except ValueError as e:
            self.errors.append(
                f"Row {self.row_index}: {e} for {field_name} in {self.source.value}"
            )
            return None
        if parsed is None and required:
            self.errors.append(
                f"Row {self.row_index}: Field {field_name} empty for {self.source.value}"
            )
        return parsed


def _clarify_ticket(reader: _RowReader) -> Ticket:
    row = reader.row
    client = _text(row.get("Raison sociale société"), "Unknown Client")
    return Ticket(
        id=_text(row.get("ID cas"), f"clarify-{reader.row_index}"),
        source=TicketSource.CLARIFY,
        client=client,
        company=client,
        status=_text(row.get("Statut"), "Unknown"),
        severity=_text(row.get("Sévérité"), "Unknown"),
        priority=_text(row.get("Priorité"), "Unknown"),
        created_at=reader.date("Date de création"),
        incident_start_date=reader.date("Date de Début d'Incident"),
        closed_at=reader.date("Date de clôture du cas"),
        last_updated_at=reader.date("Date de dernière mise à jour du cas"),
        owner=_text(row.get("Propriétaire"), "Unassigned"),
        region=_text(row.get("Région du site"), "Unknown"),
        city=_text(row.get("Ville du site"), "Unknown"),
        raw=row,
    )


def _jira_ticket(reader: _RowReader) -> Ticket:
    row = reader.row
    client = _text(_first(row, "Organisations", "Organizations"), "Unknown Organisation")
    return Ticket(
        id=_text(_first(row, "Clé", "Key", "Issue key"), f"jira-{reader.row_index}"),
        source=TicketSource.JIRA,
        client=client,
        company=client,
        status=_text(_first(row, "État", "Status"), "Unknown"),
        priority=_text(_first(row, "Priorité", "Priority"), "Unknown"),
        ticket_type=_text(_first(row, "Type de ticket", "Issue Type"), "Unknown"),
        created_at=reader.date("Création", "Created"),
        last_updated_at=reader.date("Mise à jour", "Updated"),
        owner=_text(_first(row, "Responsable", "Assignee"), "Unassigned"),
        raw=row,
    )


def _itsm_fields(reader: _RowReader, created_at: Optional[datetime]) -> dict[str, Any]:
    """
    Status, priority and last update shared by ITSM exports.

    Without a last-intervention column the ticket is taken as not updated
    since creation.
    """
    row = reader.row
    last_updated_at = reader.date(*ITSM_LAST_UPDATE_COLUMNS, required=False)
    return {
        "status": _text(_first(row, "Etat", "Statut", "Status")),
        "priority": _text(_first(row, "Prio.", "Priorité", "Priority"), "P3"),
        "owner": _text(_first(row, "Intervenant", "Assignee"), "Unassigned"),
        "last_updated_at": last_updated_at or created_at,
    }


def _itsm_change_ticket(reader: _RowReader) -> Ticket:
    row = reader.row
    client = _text(row.get("Lieu société"), "Unknown Company")
    created_at = reader.date("Date date creation CHG")
    return Ticket(
        id=_text(row.get("ID de changement"), f"change-{reader.row_index}"),
        source=TicketSource.ITSM_CHANGE,
        client=client,
        company=client,
        created_at=created_at,
        closed_at=reader.date("Date date fin CHG"),
        raw=row,
        **_itsm_fields(reader, created_at),
    )


def _itsm_incident_ticket(reader: _RowReader) -> Ticket:
    row = reader.row
    client = _text(row.get("Client+"), "Unknown Client")
    created_at = reader.date("Date de création")
    return Ticket(
        id=_text(row.get("Id incident"), f"incident-{reader.row_index}"),
        source=TicketSource.ITSM_INCIDENT,
        client=client,
        company=client,
        created_at=created_at,
        closed_at=reader.date("Last Resolved Date"),
        raw=row,
        **_itsm_fields(reader, created_at),
    )


ROW_BUILDERS: dict[TicketSource, Callable[[_RowReader], Ticket]] = {
    TicketSource.CLARIFY: _clarify_ticket,
    TicketSource.JIRA: _jira_ticket,
    TicketSource.ITSM_CHANGE: _itsm_change_ticket,
    TicketSource.ITSM_INCIDENT: _itsm_incident_ticket,
}


def parse_rows(
    rows: Iterable[dict[str, Any]],
    source: TicketSource | str,
    existing_ids: Iterable[str] = (),
) -> IngestResult:
    """
    Convert export rows (header -> value) into tickets.

    Args:
        rows: Rows keyed by column header.
        source: Ticketing system the rows come from.
        existing_ids: Ids already loaded; rows repeating them are skipped.

    Returns:
        IngestResult with tickets and per-row errors.

    Raises:
        IngestError: If the source is not supported.
    """
    try:
        source = TicketSource(source)
    except ValueError as e:
        raise IngestError(f"Unsupported file type: {source}") from e

    builder = ROW_BUILDERS[source]
    seen = set(existing_ids)
    result = IngestResult()

    for row_index, row in enumerate(rows, 1):
        reader = _RowReader(row, row_index, source)
        try:
            ticket = builder(reader)
        except (ValueError, TypeError) as e:
            result.errors.append(f"Row {row_index}: {e}")
            continue

        if ticket.id in seen:
            result.errors.append(f"Row {row_index}: ID {ticket.id} already exists")
            continue

        result.errors.extend(reader.errors)
        if ticket.created_at is None:
            result.errors.append(f"Row {row_index}: Required creation date missing")

        seen.add(ticket.id)
        result.tickets.append(ticket)

    return result


def read_rows(path: Path) -> list[dict[str, Any]]:
    """
    Read the first worksheet of an .xlsx file as header-keyed rows.

    Raises:
        IngestError: If the file cannot be opened.
    """
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise IngestError(f"Could not read {path}: {e}") from e

    try:
        worksheet = workbook.worksheets[0]
        values = worksheet.iter_rows(values_only=True)
        header = next(values, None)
        if header is None:
            return []
        columns = [str(h).strip() if h is not None else "" for h in header]

        rows = []
        for raw in values:
            if raw is None or all(v is None or str(v).strip() == "" for v in raw):
                continue
            rows.append({col: val for col, val in zip(columns, raw) if col})
        return rows
    finally:
        workbook.close()


def load_tickets(
    path: Path,
    source: TicketSource | str,
    existing_ids: Iterable[str] = (),
) -> IngestResult:
    """
    Convenience function to load tickets from an export file.

    Args:
        path: Path to the .xlsx export.
        source: Ticketing system the export comes from.
        existing_ids: Ids already loaded; repeated ids are skipped.

    Returns:
        IngestResult with tickets and per-row errors.
    """
    logger.info(f"Loading {source} tickets from {path}")
    rows = read_rows(path)
    result = parse_rows(rows, source, existing_ids)
    logger.info(
        f"Loaded {len(result.tickets)} tickets from {path.name} "
        f"({len(result.errors)} issue(s))"
    )
    for error in result.errors:
        logger.debug(error)
    return result
