import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from starlette.responses import PlainTextResponse, Response

from .. import __version__, config
from ..monitoring.metrics import MetricsRegistry, instrument
from .bridge import InferenceBridge, InferenceError
from .load_model import predict_fn as model_predict_fn

logger = logging.getLogger(__name__)

SENTIMENT_ENDPOINT = "/sentiment"

router = APIRouter()


class TextQuery(BaseModel):
    text: str


async def query_error_handler(request: Request, exc: RequestValidationError):
    for err in exc.errors():
        loc = err.get("loc", ())
        if not loc or loc[0] != "query":
            continue
        if err.get("type") in ("missing", "value_error.missing"):
            message = f"missing field `{loc[-1]}`"
        else:
            message = err.get("msg", "invalid query")
        return PlainTextResponse(f"Query deserialize error: {message}", status_code=400)
    return await request_validation_exception_handler(request, exc)


@router.api_route(SENTIMENT_ENDPOINT, methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
async def sentiment_predict(request: Request, query: TextQuery = Depends()):
    try:
        output = await request.app.state.bridge.classify(query.text)
    except InferenceError:
        logger.exception("Sentiment prediction failed")
        return PlainTextResponse("Operation Error!", status_code=500)

    body = "".join(f"Sentiment: {sentiment.polarity.name}\n" for sentiment in output)
    request.app.state.metrics.increment(SENTIMENT_ENDPOINT)
    return PlainTextResponse(body)


@router.get("/metrics")
def metrics(request: Request):
    registry = request.app.state.metrics
    return Response(registry.render(), media_type=registry.content_type)


def create_app(predict_fn=None, metrics=None, max_workers=None) -> FastAPI:
    """Build the service.

    ``predict_fn`` defaults to the transformers model and ``metrics`` to a
    fresh registry in ``METRICS_NAMESPACE``. A metric registration error
    propagates, so a misconfigured process never starts serving.
    """
    if metrics is None:
        metrics = MetricsRegistry(config.METRICS_NAMESPACE, endpoints=[SENTIMENT_ENDPOINT])
    bridge = InferenceBridge(
        predict_fn or model_predict_fn, max_workers or config.INFERENCE_WORKERS
    )

    @asynccontextmanager
    async def lifespan(app):
        yield
        bridge.shutdown()

    app = FastAPI(title="Sentiment Service", version=__version__, lifespan=lifespan)
    app.state.metrics = metrics
    app.state.bridge = bridge
    instrument(app, metrics)
    app.add_exception_handler(RequestValidationError, query_error_handler)
    app.include_router(router)
    return app


app = create_app()
