"""External collaborators of the assistant: school records and speech.

``build_school_directory`` picks the records backend so the CLI, the web app
and the tests share a single source of truth for the wiring.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from tools.school_directory import (
    DirectoryError,
    GoogleSheetsSchoolDirectory,
    JsonSchoolDirectory,
    SchoolDirectory,
)

SCHOOL_BACKENDS = ("json", "google_sheets")


def build_school_directory(
    backend: str,
    *,
    data_path: Optional[Path] = None,
    sheet_id: Optional[str] = None,
    credentials_path: Optional[Path] = None,
) -> SchoolDirectory:
    # Build the records backend named by ``backend``
    name = (backend or "json").strip().lower()
    if name == "json":
        if data_path is None:
            raise DirectoryError("SCHOOL_DATA_PATH is required for the JSON backend.")
        return JsonSchoolDirectory(data_path)
    if name in {"google_sheets", "sheets"}:
        return GoogleSheetsSchoolDirectory(sheet_id or "", credentials_path=credentials_path)
    raise DirectoryError(f"Unknown school data backend {backend!r}; expected one of {SCHOOL_BACKENDS}.")


__all__ = ["SCHOOL_BACKENDS", "build_school_directory"]
