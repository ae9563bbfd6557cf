# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for the intake gateway.

Every terminal rejection of the intake pipeline is an :class:`IntakeError`
subclass carrying the HTTP status, the generic message returned to the
caller and a short ``outcome`` label used for logs and metrics. The message
is deliberately generic: validation internals are never echoed back.
"""

from __future__ import annotations


class ConfigError(ValueError):
    """Raised at startup when the process configuration is invalid."""


class DeliveryError(RuntimeError):
    """Raised by a mail sender when a message could not be handed off."""


class IntakeError(Exception):
    """Base class for terminal pipeline rejections."""

    status_code: int = 400
    detail: str = "bad request"
    outcome: str = "rejected"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class MethodNotAllowed(IntakeError):
    status_code = 405
    detail = "method not allowed"
    outcome = "method_not_allowed"


class BadSiteKey(IntakeError):
    status_code = 400
    detail = "bad site key"
    outcome = "bad_site_key"


class UnknownSite(IntakeError):
    status_code = 404
    detail = "unknown site"
    outcome = "unknown_site"


class RateLimited(IntakeError):
    status_code = 429
    detail = "rate limited"
    outcome = "rate_limited"


class PayloadTooLarge(IntakeError):
    status_code = 413
    detail = "payload too large"
    outcome = "too_large"


class BodyReadError(IntakeError):
    status_code = 400
    detail = "read error"
    outcome = "read_error"


class SignatureInvalid(IntakeError):
    status_code = 401
    detail = "unauthorized"
    outcome = "unauthorized"


class MalformedPayload(IntakeError):
    """The body could not be parsed in the selected format."""

    status_code = 400
    detail = "bad payload"
    outcome = "malformed"


class UnsupportedMediaType(IntakeError):
    """No enabled decoder accepts the request's content type."""

    status_code = 415
    detail = "unsupported content type"
    outcome = "unsupported_media_type"


class InvalidSubmission(IntakeError):
    status_code = 400
    detail = "invalid submission"
    outcome = "invalid"

    def __init__(self, reason: str):
        super().__init__()
        self.reason = reason


class DeliveryFailed(IntakeError):
    status_code = 500
    detail = "failed to send"
    outcome = "delivery_failed"
