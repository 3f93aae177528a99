import time

import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

from sentiment_api.monitoring.metrics import MetricsRegistry
from sentiment_api.serving.app import SENTIMENT_ENDPOINT, create_app
from sentiment_api.serving.load_model import Polarity, SentimentResult


class FakeModel:
    """Keyword classifier standing in for the transformers pipeline."""

    def __init__(self, delay=0.0):
        self.delay = delay
        self.calls = []

    def __call__(self, text):
        self.calls.append(text)
        if self.delay:
            time.sleep(self.delay)
        if "sad" in text.lower() or "bad" in text.lower():
            return [SentimentResult(Polarity.Negative)]
        return [SentimentResult(Polarity.Positive)]


def scraped_value(body, name, labels):
    for family in text_string_to_metric_families(body):
        for sample in family.samples:
            if sample.name == name and sample.labels == labels:
                return sample.value
    return None


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def metrics():
    return MetricsRegistry("api", endpoints=[SENTIMENT_ENDPOINT])


@pytest.fixture
def client(fake_model, metrics):
    app = create_app(predict_fn=fake_model, metrics=metrics, max_workers=2)
    with TestClient(app) as c:
        yield c
