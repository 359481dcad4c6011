"""Tests for spreadsheet ingestion."""

from datetime import date, datetime

import pytest

from conftest import CLARIFY_HEADERS, clarify_row, write_workbook
from ticket_alerts.ingest import IngestError, load_tickets, parse_date, parse_rows
from ticket_alerts.models import TicketSource


class TestParseDate:
    """Tests for parse_date."""

    def test_datetime_passthrough(self):
        """Test datetime cells are returned unchanged."""
        value = datetime(2025, 3, 5, 10, 20, 30)
        assert parse_date(value) is value

    def test_date_cell(self):
        """Test date cells become midnight datetimes."""
        assert parse_date(date(2025, 3, 5)) == datetime(2025, 3, 5)

    def test_excel_serial(self):
        """Test Excel serial numbers."""
        assert parse_date(45123.5) == datetime(2023, 7, 16, 12, 0)
        assert parse_date(45000) == datetime(2023, 3, 15)

    def test_french_format(self):
        """Test dd/mm/yyyy with and without time."""
        assert parse_date("05/03/2025 10:20:30") == datetime(2025, 3, 5, 10, 20, 30)
        assert parse_date(" 5/3/2025 ") == datetime(2025, 3, 5)

    def test_iso_format(self):
        """Test yyyy-mm-dd with optional T time."""
        assert parse_date("2025-03-05T10:20:30") == datetime(2025, 3, 5, 10, 20, 30)
        assert parse_date("2025-03-05") == datetime(2025, 3, 5)

    def test_dashed_format(self):
        """Test dd-mm-yyyy with time."""
        assert parse_date("05-03-2025 08:00:00") == datetime(2025, 3, 5, 8, 0, 0)

    @pytest.mark.parametrize("value", [None, "", "  ", "null", "undefined"])
    def test_empty_values(self, value):
        """Test empty cells parse to None."""
        assert parse_date(value) is None

    def test_impossible_date(self):
        """Test out-of-range day is rejected."""
        with pytest.raises(ValueError, match="Invalid date format"):
            parse_date("31/02/2025")

    def test_unrecognised(self):
        """Test garbage is rejected."""
        with pytest.raises(ValueError, match="Unrecognised date"):
            parse_date("yesterday")

    def test_out_of_range_serial(self):
        """Test an Excel serial beyond the datetime range is rejected."""
        with pytest.raises(ValueError, match="Invalid date format"):
            parse_date(1e12)


class TestParseRows:
    """Tests for parse_rows."""

    def test_clarify_row(self):
        """Test Clarify columns are mapped."""
        row = dict(zip(CLARIFY_HEADERS, clarify_row(
            "CAS-1", 2, "01/06/2025 08:00:00", "02/06/2025 09:30:00", company="Globex",
        )))
        result = parse_rows([row], "clarify")

        assert result.errors == [
            "Row 1: Field Date de clôture du cas empty for clarify",
        ]
        [ticket] = result.tickets
        assert ticket.id == "CAS-1"
        assert ticket.source == TicketSource.CLARIFY
        assert ticket.severity == "2"
        assert ticket.status == "Ouvert"
        assert ticket.client == "Globex"
        assert ticket.company == "Globex"
        assert ticket.created_at == datetime(2025, 6, 1, 8, 0)
        assert ticket.last_updated_at == datetime(2025, 6, 2, 9, 30)
        assert ticket.owner == "jdupont"
        assert ticket.city == "Paris"

    def test_jira_english_headers(self):
        """Test Jira exports with English headers."""
        row = {
            "Issue key": "OPS-12",
            "Organizations": "Initech",
            "Status": "In Progress",
            "Priority": "High",
            "Created": "2025-06-01T08:00:00",
            "Updated": "2025-06-01T10:00:00",
            "Assignee": "alice",
        }
        [ticket] = parse_rows([row], TicketSource.JIRA).tickets
        assert ticket.id == "OPS-12"
        assert ticket.client == "Initech"
        assert ticket.status == "In Progress"
        assert ticket.last_updated_at == datetime(2025, 6, 1, 10, 0)
        assert ticket.owner == "alice"
        assert ticket.ticket_type == "Unknown"

    def test_itsm_incident_row(self):
        """Test ITSM incident columns are mapped."""
        row = {
            "Id incident": "INC0001",
            "Client+": "Umbrella",
            "Date de création": "01/06/2025",
            "Last Resolved Date": "02/06/2025",
        }
        [ticket] = parse_rows([row], "itsm-incident").tickets
        assert ticket.id == "INC0001"
        assert ticket.source == TicketSource.ITSM_INCIDENT
        assert ticket.closed_at == datetime(2025, 6, 2)
        assert ticket.last_updated_at == datetime(2025, 6, 1)
        assert ticket.priority == "P3"

    def test_itsm_optional_columns(self):
        """Test ITSM status, priority and last intervention are read when present."""
        row = {
            "Id incident": "INC0002",
            "Client+": "Umbrella",
            "Etat": "En cours",
            "Prio.": "p1",
            "Date de création": "01/06/2025 08:00:00",
            "Dernière IT le :": "01/06/2025 10:00:00",
        }
        result = parse_rows([row], "itsm-incident")
        [ticket] = result.tickets
        assert ticket.status == "En cours"
        assert ticket.priority == "p1"
        assert ticket.last_updated_at == datetime(2025, 6, 1, 10, 0)
        assert not any("Dernière IT" in e for e in result.errors)

    def test_itsm_change_defaults(self):
        """Test missing id and client get defaults."""
        row = {"Date date creation CHG": "01/06/2025", "Date date fin CHG": "03/06/2025"}
        [ticket] = parse_rows([row], "itsm-change").tickets
        assert ticket.id == "change-1"
        assert ticket.client == "Unknown Company"

    def test_duplicate_ids_skipped(self):
        """Test repeated and pre-existing ids are skipped with an error."""
        rows = [
            {"Id incident": "INC1", "Client+": "A", "Date de création": "01/06/2025", "Last Resolved Date": "02/06/2025"},
            {"Id incident": "INC1", "Client+": "A", "Date de création": "01/06/2025", "Last Resolved Date": "02/06/2025"},
            {"Id incident": "INC0", "Client+": "A", "Date de création": "01/06/2025", "Last Resolved Date": "02/06/2025"},
        ]
        result = parse_rows(rows, "itsm-incident", existing_ids=["INC0"])
        assert [t.id for t in result.tickets] == ["INC1"]
        assert result.errors == [
            "Row 2: ID INC1 already exists",
            "Row 3: ID INC0 already exists",
        ]

    def test_bad_date_reported(self):
        """Test an unparseable date is kept as None with an error."""
        row = {
            "Id incident": "INC1",
            "Client+": "A",
            "Date de création": "soon",
            "Last Resolved Date": "02/06/2025",
        }
        result = parse_rows([row], "itsm-incident")
        assert result.tickets[0].created_at is None
        assert "Row 1: Unrecognised date: soon for Date de création in itsm-incident" in result.errors
        assert "Row 1: Required creation date missing" in result.errors

    def test_out_of_range_serial_is_reported(self):
        """Test a huge Excel serial is reported on its row without aborting the import."""
        rows = [
            dict(zip(CLARIFY_HEADERS, clarify_row("CAS-1", 1, 1e12, "02/06/2025"))),
            dict(zip(CLARIFY_HEADERS, clarify_row("CAS-2", 1, "01/06/2025", "02/06/2025"))),
        ]
        result = parse_rows(rows, "clarify")
        assert [t.id for t in result.tickets] == ["CAS-1", "CAS-2"]
        assert result.tickets[0].created_at is None
        assert "Row 1: Invalid date format: 1000000000000.0 for Date de création in clarify" in result.errors
        assert "Row 1: Required creation date missing" in result.errors

    def test_unsupported_source(self):
        """Test unknown source raises."""
        with pytest.raises(IngestError, match="Unsupported file type"):
            parse_rows([], "servicenow")


class TestLoadTickets:
    """Tests for load_tickets."""

    def test_load_workbook(self, tmp_path):
        """Test loading a Clarify .xlsx export."""
        path = write_workbook(
            tmp_path / "export.xlsx",
            CLARIFY_HEADERS,
            [
                clarify_row("CAS-1", 1, datetime(2025, 6, 1, 8), datetime(2025, 6, 1, 9)),
                [None] * len(CLARIFY_HEADERS),
                clarify_row("CAS-2", 3, datetime(2025, 6, 1, 8), datetime(2025, 6, 2, 9)),
            ],
        )

        result = load_tickets(path, "clarify")

        assert [t.id for t in result.tickets] == ["CAS-1", "CAS-2"]
        assert result.tickets[0].severity == "1"
        assert result.tickets[0].created_at == datetime(2025, 6, 1, 8)

    def test_missing_file(self, tmp_path):
        """Test unreadable file raises IngestError."""
        with pytest.raises(IngestError, match="Could not read"):
            load_tickets(tmp_path / "missing.xlsx", "clarify")

    def test_not_a_workbook(self, tmp_path):
        """Test a non-xlsx file raises IngestError."""
        path = tmp_path / "export.xlsx"
        path.write_text("id,status\n1,open\n")
        with pytest.raises(IngestError):
            load_tickets(path, "clarify")
