"""
FastAPI application factory for the intake gateway.

The module exposes a `create_app` function that builds the public HTTP
surface: the health probe, the Prometheus scrape endpoint and the contact
intake endpoint, which hands every request to an :class:`IntakePipeline`.

Endpoints:
  GET      /health                    liveness probe, body ``ok``
  GET      /metrics                   Prometheus text exposition
  OPTIONS  /v1/contact/{site_key}     CORS preflight (204)
  POST     /v1/contact/{site_key}     submit a contact form
  *        /v1/contact/{site_key}     any other method answers 405
"""

import logging
import time
from contextlib import AbstractAsyncContextManager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from .logger import RequestLogger, get_logger
from .pipeline import IntakePipeline, IntakeRequest

CONTACT_PREFIX = "/v1/contact/"
INTAKE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

SECURITY_HEADERS = {
    "Referrer-Policy": "no-referrer-when-downgrade",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
}

logger = get_logger("FormCourier.API")
intake_logger = get_logger("FormCourier.Intake")


def create_app(
    pipeline: IntakePipeline,
    lifespan: Optional[Callable[[FastAPI], AbstractAsyncContextManager]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    pipeline:
        Instance of :class:`form_courier.pipeline.IntakePipeline` that decides
        the outcome of every contact submission.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn or any ASGI
        server.
    """
    api = FastAPI(title="Form Courier", lifespan=lifespan)
    api.state.pipeline = pipeline

    @api.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request and turn unexpected errors into a 500."""
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error serving %s %s", request.method, request.url.path)
            response = PlainTextResponse("internal error", status_code=500)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value

        status = response.status_code
        level = logging.INFO
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        logger.log(
            level,
            "request completed method=%s path=%s status=%d duration_ms=%.1f",
            request.method,
            request.url.path,
            status,
            (time.perf_counter() - start) * 1000,
        )
        return response

    @api.get("/health", response_class=PlainTextResponse)
    async def health():
        """Return a plain ``ok`` liveness payload."""
        return PlainTextResponse("ok")

    @api.get("/metrics")
    async def metrics():
        """Expose Prometheus metrics collected by the pipeline."""
        return Response(content=pipeline.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    @api.api_route(CONTACT_PREFIX + "{site_key:path}", methods=INTAKE_METHODS)
    async def contact(site_key: str, request: Request):
        """Run a contact submission through the intake pipeline."""
        intake = IntakeRequest(
            method=request.method.upper(),
            tenant_key=site_key,
            headers=request.headers,
            peer=request.client.host if request.client else None,
            body=request.stream(),
        )
        log = RequestLogger(intake_logger, {"method": intake.method, "path": request.url.path})
        result = await pipeline.process(intake, log)
        return Response(
            content=result.content,
            status_code=result.status_code,
            headers=result.headers,
            media_type=result.media_type,
        )

    return api
