"""Load the labeled template sentences used to train the intent classifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import cycle
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import yaml

from core.patterns import NAME_SLOT_FILLERS, SUBJECT_SLOT_FILLERS

DEFAULT_TEMPLATES_PATH = Path(__file__).resolve().parents[1] / "config" / "intent_templates.yml"
WILDCARD = "*"


@dataclass(frozen=True)
class IntentTemplates:
    """Template sentences for a single intent label."""

    name: str
    templates: List[str] = field(default_factory=list)


class TemplateConfig:
    """Access helpers for the template catalogue."""

    def __init__(self, intents: Iterable[IntentTemplates]) -> None:
        lookup = {intent.name: intent for intent in intents if intent.templates}
        if not lookup:
            raise ValueError("TemplateConfig requires at least one intent with templates.")
        self._intents: Dict[str, IntentTemplates] = lookup

    def names(self) -> List[str]:
        return list(self._intents.keys())

    def templates_for(self, name: str) -> List[str]:
        definition = self._intents.get(name)
        return list(definition.templates) if definition else []

    def training_rows(self, variants: int = 3) -> List[Tuple[str, str]]:
        """Return ``(text, label)`` pairs with wildcard slots filled in."""

        rows: List[Tuple[str, str]] = []
        for name, definition in self._intents.items():
            for template in definition.templates:
                for text in expand_template(template, variants=variants):
                    rows.append((text, name))
        return rows


def expand_template(
    template: str,
    *,
    variants: int = 3,
    names: Sequence[str] = NAME_SLOT_FILLERS,
    subjects: Sequence[str] = SUBJECT_SLOT_FILLERS,
) -> List[str]:
    """Fill ``*`` slots: the first slot takes a child name, later slots a subject.

    Templates without slots are returned once; the expansion is deterministic.
    """

    slots = template.count(WILDCARD)
    if slots == 0:
        return [template.strip()]
    name_pool = cycle(names)
    subject_pool = cycle(subjects)
    expanded: List[str] = []
    for _ in range(max(1, variants)):
        parts = template.split(WILDCARD)
        text = parts[0]
        for index, tail in enumerate(parts[1:]):
            filler = next(name_pool) if index == 0 else next(subject_pool)
            text += filler + tail
        cleaned = " ".join(text.split())
        if cleaned not in expanded:
            expanded.append(cleaned)
    return expanded


def load_template_config(path: Path | str | None = None) -> TemplateConfig:
    """Load the YAML template catalogue into a ``TemplateConfig``."""

    target = Path(path) if path else DEFAULT_TEMPLATES_PATH
    if not target.exists():
        raise FileNotFoundError(f"Intent templates not found: {target}")

    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Unsupported YAML document shape in {target}")
    intents_payload = data.get("intents")
    if not isinstance(intents_payload, list):
        raise ValueError("Intent templates must define a top-level 'intents' list.")

    intents: List[IntentTemplates] = []
    for entry in intents_payload:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        raw_templates = entry.get("templates") or []
        templates = [
            str(item).strip()
            for item in raw_templates
            if isinstance(item, str) and item.strip()
        ]
        if not name:
            continue
        intents.append(IntentTemplates(name=name, templates=templates))

    if not intents:
        raise ValueError("Intent templates did not yield any valid intent definitions.")
    return TemplateConfig(intents)


__all__ = [
    "DEFAULT_TEMPLATES_PATH",
    "IntentTemplates",
    "TemplateConfig",
    "expand_template",
    "load_template_config",
]
