import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))

MODEL_ID = os.getenv("MODEL_ID", "distilbert-base-uncased-finetuned-sst-2-english")
MODEL_URI = os.getenv("MODEL_URI")  # e.g. models:/Sentiment/Production
STRICT_REGISTRY = os.getenv("STRICT_REGISTRY", "0") == "1"
# registry models only report LABEL_<n>, so the class count comes from here
REGISTRY_NUM_LABELS = int(os.getenv("REGISTRY_NUM_LABELS", "3"))
# 1 = build the pipeline once and share it, 0 = rebuild it on every request
MODEL_CACHE = os.getenv("MODEL_CACHE", "0") == "1"

INFERENCE_WORKERS = int(os.getenv("INFERENCE_WORKERS", "4"))
METRICS_NAMESPACE = os.getenv("METRICS_NAMESPACE", "api")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
