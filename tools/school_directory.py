"""Read-only access to the school records (parents, children, grades, ...).

The records live in six tables (``Parents``, ``Élèves``, ``Notes``,
``Présences``, ``Devoirs``, ``Écoles``) whose rows are plain mappings keyed by
the French column headers. Two backends provide those rows: a local JSON file
(development, tests) and a Google Sheets spreadsheet read through the Sheets
v4 API with a service account. Everything above ``rows()`` is shared.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.json_storage import read_json
from core.school_records import AttendanceRecord, Child, Grade, HomeworkItem, Parent, School
from core.text_utils import clean_phone_number

logger = logging.getLogger(__name__)

PARENTS_TABLE = "Parents"
CHILDREN_TABLE = "Élèves"
GRADES_TABLE = "Notes"
ATTENDANCE_TABLE = "Présences"
HOMEWORK_TABLE = "Devoirs"
SCHOOLS_TABLE = "Écoles"
TABLES = (PARENTS_TABLE, CHILDREN_TABLE, GRADES_TABLE, ATTENDANCE_TABLE, HOMEWORK_TABLE, SCHOOLS_TABLE)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

# Suffix lengths compared when full numbers differ (country code vs. national format).
PHONE_SUFFIX_LENGTHS = (10, 9, 8)

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y", "%d-%m-%Y")

Row = Dict[str, str]


class DirectoryError(RuntimeError):
    """Raised when the school records cannot be read."""


def _cell(row: Row, column: str) -> str:
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


def parse_score(value: Any) -> Optional[float]:
    """Parse ``"12,5"`` / ``"12.5"`` / ``12`` into a float; ``None`` when not numeric."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = str(value).strip().replace(",", ".")
    match = re.match(r"^-?\d+(?:\.\d+)?", cleaned)
    if not match:
        return None
    return float(match.group(0))


def parse_date(value: Any) -> Optional[date]:
    """Accept ISO dates, ``dd/mm/yyyy`` and ISO timestamps."""

    text = str(value or "").strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def phone_digits(value: str) -> str:
    return re.sub(r"\D", "", clean_phone_number(value))


def phone_matches(stored: str, incoming: str) -> bool:
    """Full digit equality, else equality of the last 10, 9 or 8 digits."""

    left = phone_digits(stored)
    right = phone_digits(incoming)
    if not left or not right:
        return False
    if left == right:
        return True
    for length in PHONE_SUFFIX_LENGTHS:
        if len(left) >= length and len(right) >= length and left[-length:] == right[-length:]:
            return True
    return False


class SchoolDirectory:
    """Shared lookups over the six record tables."""

    backend_name = "base"

    def rows(self, table: str) -> List[Row]:
        raise NotImplementedError

    def authenticate(self, sender_id: str) -> Optional[Parent]:
        """Map a sender id (``whatsapp:+33...``) to its parent record."""

        incoming = clean_phone_number(sender_id)
        if not incoming:
            return None
        for row in self.rows(PARENTS_TABLE):
            stored = _cell(row, "Numéro WhatsApp")
            if stored and phone_matches(stored, incoming):
                parent = Parent(
                    id=_cell(row, "ID"),
                    first_name=_cell(row, "Prénom"),
                    last_name=_cell(row, "Nom"),
                    phone=stored,
                )
                logger.info("Authenticated parent %s", parent.id)
                return parent
        logger.warning("No parent matches sender ending in %s", phone_digits(incoming)[-4:])
        return None

    def children_of(self, parent_id: str) -> List[Child]:
        return [
            self._child_from_row(row)
            for row in self.rows(CHILDREN_TABLE)
            if _cell(row, "Parent_ID") == parent_id
        ]

    def grades_of(self, child_id: str) -> List[Grade]:
        return [
            Grade(subject=_cell(row, "Matière"), score=parse_score(row.get("Note")))
            for row in self._rows_for_child(GRADES_TABLE, child_id)
        ]

    def attendance_of(self, child_id: str) -> List[AttendanceRecord]:
        return [
            AttendanceRecord(
                date=parse_date(row.get("Date")),
                status=_cell(row, "Statut"),
                raw_date=_cell(row, "Date"),
            )
            for row in self._rows_for_child(ATTENDANCE_TABLE, child_id)
        ]

    def homework_of(self, child_id: str) -> List[HomeworkItem]:
        return [
            HomeworkItem(
                subject=_cell(row, "Matière"),
                description=_cell(row, "Description"),
                due_date=parse_date(row.get("Date_Limite")),
                raw_due_date=_cell(row, "Date_Limite"),
            )
            for row in self._rows_for_child(HOMEWORK_TABLE, child_id)
        ]

    def school_of(self, child_id: str) -> Optional[School]:
        child_row = next((row for row in self.rows(CHILDREN_TABLE) if _cell(row, "ID") == child_id), None)
        if child_row is None:
            return None
        school_id = _cell(child_row, "École_ID")
        if not school_id:
            return None
        for row in self.rows(SCHOOLS_TABLE):
            if _cell(row, "ID") == school_id:
                return School(name=_cell(row, "Nom"), class_name=_cell(child_row, "Classe"))
        return None

    def _rows_for_child(self, table: str, child_id: str) -> List[Row]:
        return [row for row in self.rows(table) if _cell(row, "Élève_ID") == child_id]

    @staticmethod
    def _child_from_row(row: Row) -> Child:
        return Child(
            id=_cell(row, "ID"),
            first_name=_cell(row, "Prénom"),
            last_name=_cell(row, "Nom"),
            class_name=_cell(row, "Classe"),
            school_id=_cell(row, "École_ID") or None,
        )


class JsonSchoolDirectory(SchoolDirectory):
    """Tables stored as ``{"Parents": [{...}], "Élèves": [...], ...}`` in one file.

    The file is re-read on every lookup so edits show up without a restart.
    """

    backend_name = "json"

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def rows(self, table: str) -> List[Row]:
        if not self._path.exists():
            raise DirectoryError(f"School data file {self._path} does not exist.")
        try:
            payload = read_json(self._path, {})
        except (OSError, ValueError) as exc:
            raise DirectoryError(f"Could not read school data from {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise DirectoryError(f"School data in {self._path} must be a JSON object of tables.")
        rows = payload.get(table) or []
        if not isinstance(rows, list):
            raise DirectoryError(f"Table {table!r} in {self._path} must be a list of rows.")
        return [dict(row) for row in rows if isinstance(row, dict)]


def rows_from_values(values: Sequence[Sequence[Any]]) -> List[Row]:
    """Zip a Sheets ``values`` grid (header row first) into row mappings."""

    if not values:
        return []
    header = [str(cell).strip() for cell in values[0]]
    rows: List[Row] = []
    for raw in values[1:]:
        if not any(str(cell).strip() for cell in raw):
            continue
        padded = list(raw) + [""] * (len(header) - len(raw))
        rows.append({column: str(padded[index]) for index, column in enumerate(header) if column})
    return rows


class GoogleSheetsSchoolDirectory(SchoolDirectory):
    """One spreadsheet, one tab per table, first row holding the column names."""

    backend_name = "google_sheets"

    def __init__(
        self,
        spreadsheet_id: str,
        *,
        credentials_path: Path | str | None = None,
        service: Any = None,
    ) -> None:
        if not spreadsheet_id:
            raise DirectoryError("GOOGLE_SHEET_ID is required for the Google Sheets backend.")
        self._spreadsheet_id = spreadsheet_id
        self._credentials_path = Path(credentials_path) if credentials_path else None
        self._service = service

    def _sheets(self):
        if self._service is None:
            if not self._credentials_path or not self._credentials_path.exists():
                raise DirectoryError("GOOGLE_CREDENTIALS_PATH must point at a service account key file.")
            try:
                creds = service_account.Credentials.from_service_account_file(
                    str(self._credentials_path), scopes=SHEETS_SCOPES
                )
            except (OSError, ValueError) as exc:
                raise DirectoryError(f"Invalid service account credentials: {exc}") from exc
            self._service = build("sheets", "v4", credentials=creds, cache_discovery=False)
        return self._service

    def rows(self, table: str) -> List[Row]:
        try:
            result = (
                self._sheets()
                .spreadsheets()
                .values()
                .get(spreadsheetId=self._spreadsheet_id, range=f"'{table}'")
                .execute()
            )
        except HttpError as exc:
            raise DirectoryError(f"Google Sheets request for {table!r} failed: {exc}") from exc
        except OSError as exc:
            raise DirectoryError(f"Google Sheets is unreachable: {exc}") from exc
        return rows_from_values(result.get("values", []))


__all__ = [
    "DirectoryError",
    "GoogleSheetsSchoolDirectory",
    "JsonSchoolDirectory",
    "SchoolDirectory",
    "TABLES",
    "parse_date",
    "parse_score",
    "phone_matches",
    "rows_from_values",
]
