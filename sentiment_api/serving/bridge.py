import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from .load_model import SentimentResult

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """The sentiment model could not produce a result for a request."""


class InferenceBridge:
    """Runs the blocking ``predict_fn`` on a bounded thread pool.

    The event loop only awaits the future, so slow model loads never stall
    connection handling. One attempt per call, no timeout.
    """

    def __init__(self, predict_fn: Callable[[str], list], max_workers: int = 4):
        self.predict_fn = predict_fn
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="inference"
        )

    async def classify(self, text: str) -> list[SentimentResult]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, self.predict_fn, text)
        except Exception as e:
            raise InferenceError("sentiment inference failed") from e

    def shutdown(self):
        self._executor.shutdown(wait=True)
