"""HTTP surface: the Telegram webhook and the worker trigger.

Store and Bot API calls block, so they never run on the event loop: the
worker route is a plain ``def`` (FastAPI runs it in its threadpool) and the
webhook hands ingestion to the threadpool once the body is read. A long
worker pass therefore never delays webhook acknowledgements.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from jobrelay import __version__, schemas
from jobrelay.core.processor import ProcessingWorker
from jobrelay.ingestion import IngestionEndpoint, acknowledge_regardless_of_outcome

LOGGER = logging.getLogger(__name__)

# The webhook answers every method so Telegram never retries a delivery.
WEBHOOK_METHODS = [
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "TRACE",
    "CONNECT",
]


def create_app(ingestion: IngestionEndpoint, worker: ProcessingWorker) -> FastAPI:
    """Build the FastAPI app around already-wired ingestion and worker objects."""

    app = FastAPI(title="jobrelay", version=__version__)

    @app.api_route("/webhook", methods=WEBHOOK_METHODS)
    async def telegram_webhook(request: Request) -> Response:
        body = await request.body() if request.method == "POST" else b""
        outcome = await run_in_threadpool(ingestion.handle, request.method, body)
        return Response(status_code=acknowledge_regardless_of_outcome(outcome))

    @app.get("/worker", response_class=PlainTextResponse)
    def worker_alive() -> str:
        return "worker alive"

    @app.post("/worker", response_model=schemas.WorkerRunResponse)
    def run_worker() -> schemas.WorkerRunResponse:
        # Only the fetch can fail the whole pass; a 500 lets the scheduler
        # retry the invocation.
        try:
            result = worker.run_batch()
        except Exception:
            LOGGER.exception("Worker pass failed while fetching records")
            raise HTTPException(status_code=500, detail="failed to fetch")
        return schemas.WorkerRunResponse(status="processed", **asdict(result))

    return app
