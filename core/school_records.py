"""Records returned by the school directory (parents, children, domain data)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Parent:
    id: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""


@dataclass(frozen=True)
class Child:
    id: str
    first_name: str
    last_name: str
    class_name: str = ""
    school_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def answers_to(self, name: str) -> bool:
        """Case-insensitive exact match on first OR last name."""

        wanted = (name or "").strip().lower()
        if not wanted:
            return False
        return wanted in {self.first_name.strip().lower(), self.last_name.strip().lower()}


@dataclass(frozen=True)
class Grade:
    subject: str
    score: Optional[float]


@dataclass(frozen=True)
class AttendanceRecord:
    date: Optional[date]
    status: str
    raw_date: str = ""


@dataclass(frozen=True)
class HomeworkItem:
    subject: str
    description: str
    due_date: Optional[date]
    raw_due_date: str = ""


@dataclass(frozen=True)
class School:
    name: str
    class_name: str = ""


__all__ = ["AttendanceRecord", "Child", "Grade", "HomeworkItem", "Parent", "School"]
