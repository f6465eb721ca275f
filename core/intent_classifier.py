"""Runtime helper for the statistical (fallback) intent classifier.

The model is a scikit-learn TF-IDF + logistic-regression pipeline trained on
the template sentences from ``config/intent_templates.yml``. It is persisted
with joblib after the first training pass and reloaded on later runs; a
missing or unreadable pickle triggers a fresh training pass.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import joblib
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from core.intent_config import TemplateConfig, load_template_config

logger = logging.getLogger(__name__)


@dataclass
class ClassifierPrediction:
    intent: str
    confidence: float


def build_pipeline() -> Pipeline:
    return Pipeline(
        steps=[
            ("tfidf", TfidfVectorizer(ngram_range=(1, 2), min_df=1)),
            ("clf", LogisticRegression(max_iter=1000)),
        ]
    )


def train_pipeline(rows: Sequence[Tuple[str, str]]) -> Pipeline:
    """Fit a fresh pipeline on ``(text, label)`` rows."""

    if not rows:
        raise ValueError("Cannot train the intent classifier without training rows.")
    texts = [text for text, _ in rows]
    labels = [label for _, label in rows]
    pipeline = build_pipeline()
    pipeline.fit(texts, labels)
    return pipeline


class IntentClassifier:
    """Lazy loader for the scikit-learn classifier pickle, training it on demand."""

    def __init__(
        self,
        model_path: Path | str,
        *,
        templates_path: Path | str | None = None,
        template_config: Optional[TemplateConfig] = None,
    ) -> None:
        self._model_path = Path(model_path)
        self._templates_path = templates_path
        self._template_config = template_config
        self._model = None
        self._lock = threading.Lock()

    @property
    def model_path(self) -> Path:
        return self._model_path

    def _load_model(self):
        if self._model is not None:
            return self._model
        with self._lock:
            if self._model is None:
                self._model = self._load_or_train()
        return self._model

    def _load_or_train(self):
        if self._model_path.exists():
            try:
                model = joblib.load(self._model_path)
            except Exception as exc:
                logger.warning("Could not load intent model %s (%s); retraining.", self._model_path, exc)
            else:
                logger.info("Loaded intent model from %s", self._model_path)
                return model
        return self.train()

    def train(self):
        """Train from the templates, persist the pickle, and return the model."""

        config = self._template_config or load_template_config(self._templates_path)
        rows = config.training_rows()
        model = train_pipeline(rows)
        try:
            self._model_path.parent.mkdir(parents=True, exist_ok=True)
            joblib.dump(model, self._model_path)
        except OSError as exc:
            logger.warning("Trained intent model could not be saved to %s: %s", self._model_path, exc)
        else:
            logger.info("Trained intent model on %d sentences, saved to %s", len(rows), self._model_path)
        self._model = model
        return model

    def predict(self, text: str) -> Optional[ClassifierPrediction]:
        if not text or not text.strip():
            return None
        model = self._load_model()
        if model is None:
            return None
        text_batch = [text]
        proba_method = getattr(model, "predict_proba", None)
        classes = getattr(model, "classes_", None)

        if callable(proba_method) and classes is not None:
            probabilities = proba_method(text_batch)[0]
            values = list(probabilities)
            idx = max(range(len(values)), key=values.__getitem__)
            return ClassifierPrediction(intent=str(classes[idx]), confidence=float(values[idx]))

        predictions = getattr(model, "predict")(text_batch)
        return ClassifierPrediction(intent=str(predictions[0]), confidence=0.0)


__all__ = ["ClassifierPrediction", "IntentClassifier", "build_pipeline", "train_pipeline"]
