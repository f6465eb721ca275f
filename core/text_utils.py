"""Shared text normalization utilities."""

from __future__ import annotations

import hashlib


def normalize_text(value: str) -> str:
    """Collapse whitespace and lower-case ``value``."""

    return " ".join((value or "").split()).strip().lower()


def title_case(value: str) -> str:
    """First letter upper-case, remainder lower-case ("mARIE" -> "Marie")."""

    if not value:
        return value
    return value[0].upper() + value[1:].lower()


def hash_text(value: str) -> str:
    normalized = normalize_text(value)
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def clean_phone_number(value: str) -> str:
    """Drop the ``whatsapp:`` prefix and keep only digits and ``+``."""

    if not value:
        return ""
    stripped = str(value).replace("whatsapp:", "")
    return "".join(char for char in stripped if char.isdigit() or char == "+")


__all__ = ["normalize_text", "title_case", "hash_text", "clean_phone_number"]
