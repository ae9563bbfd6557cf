# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Intake pipeline: the decision chain applied to every submission.

The pipeline runs a fixed sequence of stages for each request. Every stage
is a terminal-reject point; the first one that fails decides the response
and no later stage runs:

    1. Preflight          OPTIONS answered immediately (204)
    2. MethodCheck        only POST continues (405)
    3. TenantResolution   bad key (400), unknown site (404)
    4. OriginPolicy       CORS headers on exact match, never rejects
    5. Admission          token bucket per (site, client) (429)
    6. BodyCapture        byte ceiling (413), read failure (400)
    7. Authentication     HMAC signature when the site has a secret (401)
    8. Decode             malformed (400), unsupported type (415)
    9. Validate           honeypot and required fields (400)
   10. Compose & Deliver  hand-off to the MailSender (500 on failure)
   11. Success            {"ok": true} (200)

Headers emitted by earlier stages (the CORS headers) are kept on rejection
responses. A token consumed at the admission stage is never given back, even
if the client disconnects afterwards. Unexpected exceptions are logged with
their traceback and answered with a generic 500.

The pipeline knows nothing about the web framework: the HTTP layer builds an
:class:`IntakeRequest` and renders the returned :class:`IntakeResult`.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterable, Mapping
from dataclasses import dataclass, field

from .auth import verify_signature
from .config_loader import Settings
from .decoder import decode_payload
from .errors import (
    BadSiteKey,
    BodyReadError,
    DeliveryFailed,
    IntakeError,
    InvalidSubmission,
    MethodNotAllowed,
    PayloadTooLarge,
    RateLimited,
    SignatureInvalid,
    UnknownSite,
)
from .logger import RequestLogger, get_logger
from .mailer import MailSender
from .models import ContactResponse, OutboundMessage, TenantConfig
from .prometheus import IntakeMetrics
from .rate_limit import RateLimiter
from .validator import REASON_HONEYPOT, validate_submission

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Signature",
}
JSON_MEDIA_TYPE = "application/json"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


@dataclass
class IntakeRequest:
    """Framework-neutral view of an inbound submission.

    Attributes:
        method: HTTP method, upper-case.
        tenant_key: Path suffix after ``/v1/contact/``.
        headers: Request headers; looked up with lower-case names, so pass a
            case-insensitive mapping or one with lower-case keys.
        peer: Transport-level peer address, if known.
        body: Async iterable of body chunks, consumed at most once.
    """

    method: str
    tenant_key: str
    headers: Mapping[str, str]
    peer: str | None
    body: AsyncIterable[bytes]


@dataclass
class IntakeResult:
    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    media_type: str | None = None


@dataclass
class _Context:
    request: IntakeRequest
    log: RequestLogger
    headers: dict[str, str] = field(default_factory=dict)
    tenant: TenantConfig | None = None
    client: str | None = None
    outcome: str = "sent"


def client_identity(headers: Mapping[str, str], peer: str | None) -> str:
    """Return the first X-Forwarded-For entry, else the peer address."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return peer or ""


class IntakePipeline:
    """Run the intake stages for inbound submissions.

    The pipeline itself is stateless apart from the shared rate limiter, so
    one instance serves every concurrent request.

    Attributes:
        settings: Immutable process settings, including the site registry.
        sender: Mail sender used at the delivery stage.
        limiter: Shared token-bucket limiter.
        metrics: Prometheus metrics collector.
    """

    def __init__(
        self,
        settings: Settings,
        sender: MailSender,
        limiter: RateLimiter | None = None,
        metrics: IntakeMetrics | None = None,
    ):
        self.settings = settings
        self.sender = sender
        self.limiter = limiter if limiter is not None else RateLimiter(max_buckets=settings.rate_max_buckets)
        self.metrics = metrics if metrics is not None else IntakeMetrics()

    async def process(self, request: IntakeRequest, log: RequestLogger | None = None) -> IntakeResult:
        """Run every stage for ``request`` and return the response to send.

        Args:
            request: The inbound submission.
            log: Request-scoped logger; site and client fields are bound to
                it as they become known.

        Returns:
            The status, body and headers to answer with. Never raises for
            request-level failures.
        """
        ctx = _Context(request=request, log=log or RequestLogger(get_logger("FormCourier.Intake")))
        started = time.perf_counter()
        try:
            result = await self._run(ctx)
        except IntakeError as exc:
            ctx.outcome = exc.outcome
            result = IntakeResult(
                status_code=exc.status_code,
                content=exc.detail.encode("utf-8"),
                headers=ctx.headers,
                media_type=TEXT_MEDIA_TYPE,
            )
        except asyncio.CancelledError:
            ctx.log.info("request cancelled")
            raise
        except Exception:
            ctx.outcome = "error"
            ctx.log.exception("unhandled error in intake pipeline")
            result = IntakeResult(
                status_code=500,
                content=b"internal error",
                headers=ctx.headers,
                media_type=TEXT_MEDIA_TYPE,
            )

        elapsed = time.perf_counter() - started
        tenant_key = ctx.tenant.key if ctx.tenant else None
        self.metrics.observe(tenant_key, ctx.outcome, elapsed)
        ctx.log.info(
            "intake finished",
            extra={"outcome": ctx.outcome, "status": result.status_code, "latency_ms": round(elapsed * 1000, 2)},
        )
        return result

    async def _run(self, ctx: _Context) -> IntakeResult:
        request = ctx.request

        if request.method == "OPTIONS":
            ctx.outcome = "preflight"
            return IntakeResult(status_code=204, headers=dict(PREFLIGHT_HEADERS))

        if request.method != "POST":
            ctx.log.warning("method not allowed", extra={"method": request.method})
            raise MethodNotAllowed()

        tenant = self.resolve_tenant(request.tenant_key, ctx.log)
        ctx.tenant = tenant
        ctx.log = ctx.log.bind(tenant=tenant.key)

        self.apply_origin_policy(tenant, request.headers.get("origin"), ctx.headers)

        client = client_identity(request.headers, request.peer)
        ctx.client = client
        ctx.log = ctx.log.bind(client=client)
        settings = self.settings
        if not self.limiter.allow(tenant.key, client, settings.rate_burst, settings.rate_refill_minutes):
            ctx.log.warning("rate limited")
            raise RateLimited()

        body = await self.capture_body(request.body, ctx.log)

        if tenant.requires_signature:
            if not verify_signature(body, tenant.secret, request.headers.get("x-signature")):
                ctx.log.warning("invalid signature")
                raise SignatureInvalid()

        try:
            submission = decode_payload(
                body,
                request.headers.get("content-type"),
                allow_json=settings.allow_json,
                allow_form=settings.allow_form,
            )
        except IntakeError as exc:
            ctx.log.warning(exc.detail, extra={"content_type": request.headers.get("content-type", "")})
            raise

        reason = validate_submission(submission)
        if reason is not None:
            error = InvalidSubmission(reason)
            if reason == REASON_HONEYPOT:
                error.outcome = "honeypot"
                ctx.log.warning("honeypot triggered")
            else:
                ctx.log.warning("invalid submission", extra={"reason": reason, "from": submission.email})
            raise error

        message = OutboundMessage.compose(tenant, submission, client)
        try:
            await self.sender.send(tenant, message)
        except Exception as exc:
            ctx.log.error("smtp send failed", extra={"err": repr(exc)}, exc_info=exc)
            self.metrics.inc_delivery_failure(tenant.key)
            raise DeliveryFailed() from exc

        ctx.log.info("contact email sent", extra={"from": submission.email})
        return IntakeResult(
            status_code=200,
            content=json.dumps(ContactResponse(ok=True).model_dump()).encode("utf-8"),
            headers=ctx.headers,
            media_type=JSON_MEDIA_TYPE,
        )

    def resolve_tenant(self, key: str, log: RequestLogger) -> TenantConfig:
        """Map the path suffix to a configured site.

        Raises:
            BadSiteKey: The key is empty or contains a path separator.
            UnknownSite: No site is configured under this key.
        """
        if not key or "/" in key:
            log.warning("bad site key")
            raise BadSiteKey()
        tenant = self.settings.registry.resolve(key)
        if tenant is None:
            log.warning("unknown site", extra={"site": key})
            raise UnknownSite()
        return tenant

    @staticmethod
    def apply_origin_policy(tenant: TenantConfig, origin: str | None, headers: dict[str, str]) -> None:
        """Reflect ``origin`` into ``headers`` when the site allows it."""
        if tenant.allowed_origins and tenant.origin_allowed(origin):
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"

    async def capture_body(self, chunks: AsyncIterable[bytes], log: RequestLogger) -> bytes:
        """Read the body, stopping as soon as it exceeds the ceiling.

        Raises:
            PayloadTooLarge: More than ``max_body_bytes`` were sent.
            BodyReadError: The body stream failed (e.g. client disconnect).
        """
        limit = self.settings.max_body_bytes
        buf = bytearray()
        iterator = chunks.__aiter__()
        while len(buf) <= limit:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except Exception as exc:
                log.warning("body read error", extra={"err": repr(exc)})
                raise BodyReadError() from exc
            buf.extend(chunk)
        if len(buf) > limit:
            log.warning("payload too large", extra={"size_bytes": len(buf)})
            raise PayloadTooLarge()
        return bytes(buf)
