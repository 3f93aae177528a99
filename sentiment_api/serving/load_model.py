import enum
import logging
import threading
from dataclasses import dataclass

import mlflow
import mlflow.pyfunc
from transformers import (
    AutoTokenizer,
    AutoModelForSequenceClassification,
    TextClassificationPipeline,
)

from .. import config

logger = logging.getLogger(__name__)


class Polarity(enum.Enum):
    Positive = "positive"
    Negative = "negative"
    Neutral = "neutral"


@dataclass(frozen=True)
class SentimentResult:
    polarity: Polarity


_label_map = {0: "negative", 1: "neutral", 2: "positive"}
_binary_label_map = {0: "negative", 1: "positive"}

_pipeline = _mlflow_model = None
_lock = threading.Lock()


def _normalize_label(raw_label, num_labels: int = 3) -> Polarity:
    label = str(raw_label)
    if label.startswith("LABEL_"):
        idx = int(label.split("_")[-1])
        index_map = _binary_label_map if num_labels == 2 else _label_map
        label = index_map.get(idx, label)
    try:
        return Polarity(label.lower())
    except ValueError:
        raise ValueError(f"unknown sentiment label {raw_label!r}") from None


def _build_hf_pipeline():
    logger.info("Loading sentiment model %s", config.MODEL_ID)
    tokenizer = AutoTokenizer.from_pretrained(config.MODEL_ID)
    model = AutoModelForSequenceClassification.from_pretrained(config.MODEL_ID)
    return TextClassificationPipeline(model=model, tokenizer=tokenizer)


def _get_hf_pipeline():
    global _pipeline
    if not config.MODEL_CACHE:
        return _build_hf_pipeline()
    with _lock:
        if _pipeline is None:
            _pipeline = _build_hf_pipeline()
    return _pipeline


def _try_get_mlflow_model():
    global _mlflow_model
    if not config.MODEL_URI:
        return None
    if config.MODEL_CACHE and _mlflow_model is not None:
        return _mlflow_model
    try:
        model = mlflow.pyfunc.load_model(config.MODEL_URI)
    except Exception:
        # no Production version or registry unreachable -> HF fallback
        if config.STRICT_REGISTRY:
            raise
        logger.warning(
            "Could not load %s, falling back to %s",
            config.MODEL_URI,
            config.MODEL_ID,
            exc_info=True,
        )
        return None
    if config.MODEL_CACHE:
        _mlflow_model = model
    return model


def predict_fn(text: str) -> list[SentimentResult]:
    """Classify one text.

    Blocking: loads the model (unless ``MODEL_CACHE`` is on) and runs
    inference on the calling thread. Always returns exactly one result.
    """
    m = _try_get_mlflow_model()
    if m is not None:
        out = m.predict([text])[0]
        return [SentimentResult(_normalize_label(out["label"], config.REGISTRY_NUM_LABELS))]  # type: ignore[index]
    pipe = _get_hf_pipeline()
    res = pipe(text, truncation=True)
    first = res[0] if isinstance(res, list) else res
    if isinstance(first, list):
        first = first[0]
    num_labels = pipe.model.config.num_labels
    return [SentimentResult(_normalize_label(first["label"], num_labels))]  # type: ignore[index]
