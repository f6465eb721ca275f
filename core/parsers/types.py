"""Shared dataclasses for parser outputs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional


@dataclass(frozen=True)
class TimeReference:
    label: str
    date: date
    offset: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"label": self.label, "date": self.date.isoformat()}
        if self.offset is not None:
            payload["offset"] = self.offset
        return payload


__all__ = ["TimeReference"]
