"""Train the statistical intent classifier (Tfidf + LogisticRegression) from templates.

The templates in ``config/intent_templates.yml`` are expanded into labeled
sentences, scored on a stratified hold-out split, then the final model is fit
on every sentence and written next to a JSON report.
"""

from __future__ import annotations

import argparse
import hashlib
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import joblib
from sklearn.metrics import accuracy_score, confusion_matrix, f1_score
from sklearn.model_selection import train_test_split

from app.config import (
    get_classifier_model_path,
    get_classifier_report_path,
    get_intent_templates_path,
)
from core.intent_classifier import build_pipeline
from core.intent_config import load_template_config
from core.json_storage import atomic_write_json
from core.patterns import INTENT_LABELS

logger = logging.getLogger(__name__)

LabeledRows = List[Tuple[str, str]]


@dataclass
class TrainingResult:
    model_path: Path
    report_path: Path
    metrics: Dict[str, object]


@dataclass
class _Holdout:
    train_texts: Sequence[str]
    train_labels: Sequence[str]
    eval_texts: Sequence[str]
    eval_labels: Sequence[str]
    mode: str


def _holdout(rows: LabeledRows, counts: Counter, *, test_size: float, random_state: int) -> _Holdout:
    """Stratified split; tiny or single-class sets are scored on the training rows."""

    texts = [text for text, _ in rows]
    labels = [label for _, label in rows]
    in_sample = _Holdout(texts, labels, texts, labels, "train_only")
    if len(counts) < 2 or min(counts.values()) < 2:
        return in_sample
    try:
        x_train, x_eval, y_train, y_eval = train_test_split(
            texts,
            labels,
            test_size=test_size,
            random_state=random_state,
            stratify=labels,
        )
    except ValueError as exc:
        logger.info("Hold-out split not possible (%s); scoring in-sample", exc)
        return in_sample
    return _Holdout(x_train, y_train, x_eval, y_eval, "train_test")


def _score(split: _Holdout, intents: List[str]) -> Dict[str, object]:
    model = build_pipeline()
    model.fit(split.train_texts, split.train_labels)
    predicted = model.predict(split.eval_texts)
    return {
        "accuracy": float(accuracy_score(split.eval_labels, predicted)),
        "macro_f1": float(f1_score(split.eval_labels, predicted, average="macro")),
        "confusion_matrix": {
            "labels": intents,
            "matrix": confusion_matrix(split.eval_labels, predicted, labels=intents).tolist(),
        },
        "validation_mode": split.mode,
    }


def _fingerprint(rows: LabeledRows) -> str:
    encoded = json.dumps(sorted(rows), ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def run_training_pipeline(
    *,
    templates_path: Optional[Path] = None,
    model_path: Optional[Path] = None,
    report_path: Optional[Path] = None,
    variants: int = 3,
    test_size: float = 0.2,
    random_state: int = 42,
    min_class_samples: int = 10,
) -> TrainingResult:
    """Score on a held-out split, then fit on every row and persist model + report."""

    templates_path = templates_path or get_intent_templates_path()
    model_path = model_path or get_classifier_model_path()
    report_path = report_path or get_classifier_report_path()

    rows = load_template_config(templates_path).training_rows(variants=variants)
    unsupported = sorted({label for _, label in rows if label not in INTENT_LABELS})
    if unsupported:
        raise ValueError(f"Templates define intents the assistant does not handle: {', '.join(unsupported)}")

    counts = Counter(label for _, label in rows)
    intents = sorted(counts)
    under_sampled = {intent: count for intent, count in counts.items() if count < min_class_samples}
    if under_sampled:
        logger.warning(
            "Low sample count for intents: %s",
            ", ".join(f"{intent}={count}" for intent, count in sorted(under_sampled.items())),
        )

    report: Dict[str, object] = {
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "templates_path": str(templates_path),
        "model_path": str(model_path),
        "data_count": len(rows),
        "data_hash": _fingerprint(rows),
        "class_counts": dict(counts),
        "class_warnings": under_sampled,
        "min_class_samples": min_class_samples,
        "test_size": test_size,
    }
    report.update(_score(_holdout(rows, counts, test_size=test_size, random_state=random_state), intents))

    final_model = build_pipeline()
    final_model.fit([text for text, _ in rows], [label for _, label in rows])
    model_path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(final_model, model_path)
    atomic_write_json(report_path, report)

    logger.info(
        "Trained intent classifier on %d sentences (accuracy=%.3f, macro_f1=%.3f, %s)",
        report["data_count"],
        report["accuracy"],
        report["macro_f1"],
        report["validation_mode"],
    )
    return TrainingResult(model_path=model_path, report_path=report_path, metrics=report)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Train the statistical intent classifier from templates.")
    parser.add_argument("--templates-path", type=Path, default=None, help="YAML templates (default: INTENT_TEMPLATES_PATH).")
    parser.add_argument("--model-path", type=Path, default=None, help="Where the joblib model is written.")
    parser.add_argument("--report-path", type=Path, default=None, help="Where the JSON report is written.")
    parser.add_argument("--variants", type=int, default=3, help="Sentences generated per template with slots.")
    parser.add_argument("--test-size", type=float, default=0.2)
    parser.add_argument("--random-state", type=int, default=42)
    parser.add_argument("--min-class-samples", type=int, default=10)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    result = run_training_pipeline(
        templates_path=args.templates_path,
        model_path=args.model_path,
        report_path=args.report_path,
        variants=args.variants,
        test_size=args.test_size,
        random_state=args.random_state,
        min_class_samples=args.min_class_samples,
    )
    print(f"Model: {result.model_path}\nReport: {result.report_path}")


if __name__ == "__main__":
    main()
