"""Shared fixtures for the test suite."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from openpyxl import Workbook


CLARIFY_HEADERS = [
    "ID cas",
    "Raison sociale société",
    "Statut",
    "Sévérité",
    "Priorité",
    "Date de création",
    "Date de Début d'Incident",
    "Date de clôture du cas",
    "Date de dernière mise à jour du cas",
    "Propriétaire",
    "Région du site",
    "Ville du site",
]


def write_workbook(path: Path, headers: list[str], rows: list[list]) -> Path:
    """Write a single-sheet .xlsx export."""
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


def clarify_row(case_id, severity, created, updated, status="Ouvert", company="ACME"):
    """Build one Clarify export row."""
    return [
        case_id,
        company,
        status,
        severity,
        "Haute",
        created,
        created,
        None,
        updated,
        "jdupont",
        "IDF",
        "Paris",
    ]


@pytest.fixture
def clarify_export(tmp_path):
    """
    A Clarify export relative to the current time with:
    one severe S1 ticket, one closed ticket and one fresh ticket.
    """
    now = datetime.now().replace(microsecond=0)
    rows = [
        clarify_row("CAS-001", 1, now - timedelta(days=3), now - timedelta(days=2)),
        clarify_row("CAS-002", 1, now - timedelta(days=3), now - timedelta(days=2), status="Fermé"),
        clarify_row("CAS-003", 3, now - timedelta(hours=1), now - timedelta(hours=1)),
    ]
    return write_workbook(tmp_path / "clarify_export.xlsx", CLARIFY_HEADERS, rows)
