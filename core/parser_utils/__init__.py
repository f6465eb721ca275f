"""Shared helper utilities for entity parsing."""

from .text import contains_keyword, contains_word, first_keyword, matches_term

__all__ = [
    "contains_keyword",
    "contains_word",
    "first_keyword",
    "matches_term",
]
