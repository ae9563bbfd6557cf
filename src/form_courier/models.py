# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the multi-tenant intake gateway.

This module defines the data models used throughout the application for
validation, serialization, and type safety.

Models:
    - SmtpSettings: SMTP endpoint and credentials (global or per tenant)
    - TenantConfig: Complete, immutable configuration of one site
    - Submission: Normalized contact-form payload (request-scoped)
    - OutboundMessage: Message composed for the mail sender (request-scoped)
    - ContactResponse: Success body returned to the submitter
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

WILDCARD_ORIGIN = "*"
SUBJECT_SUFFIX = "New contact"


class SmtpSettings(BaseModel):
    """SMTP server used to deliver a tenant's messages.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port (465 implies implicit TLS when ``ssl`` is set).
        user: Username for SMTP authentication.
        password: Password for SMTP authentication.
        ssl: Whether to encrypt the connection (implicit TLS or STARTTLS).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str
    port: Annotated[int, Field(gt=0, lt=65536)]
    user: str | None = None
    password: Annotated[str | None, Field(default=None, repr=False)]
    ssl: bool = False


class TenantConfig(BaseModel):
    """Configuration of one site, immutable after load.

    Attributes:
        key: Unique site identifier, also the URL path segment.
        to: Recipient address for the site's submissions.
        allowed_origins: Exact-match origins allowed for CORS. Empty means
            no CORS header is emitted; a ``"*"`` entry reflects any origin.
        subject_prefix: Prefix of the outbound subject line.
        secret: Shared HMAC secret. When set, every request must be signed.
        smtp: Per-site SMTP override; the global server is used otherwise.
        from_addr: Envelope and header sender address.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str
    to: str
    allowed_origins: tuple[str, ...] = ()
    subject_prefix: str = "[Contact]"
    secret: Annotated[str | None, Field(default=None, repr=False)]
    smtp: SmtpSettings | None = None
    from_addr: str

    @field_validator("key")
    @classmethod
    def validate_key(cls, value: str) -> str:
        if not value:
            raise ValueError("site key must not be empty")
        if "/" in value:
            raise ValueError("site key must not contain '/'")
        return value

    @property
    def requires_signature(self) -> bool:
        return bool(self.secret)

    def origin_allowed(self, origin: str | None) -> bool:
        """Return True if ``origin`` matches an allowed entry exactly."""
        if not origin:
            return False
        return any(entry == origin or entry == WILDCARD_ORIGIN for entry in self.allowed_origins)


class Submission(BaseModel):
    """Contact-form fields after decoding; ``website`` is the honeypot."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    email: str = ""
    message: str = ""
    website: str = ""

    @field_validator("name", "email", "message", "website", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return "" if value is None else value


class OutboundMessage(BaseModel):
    """Message handed to the mail sender, then discarded."""

    model_config = ConfigDict(frozen=True)

    from_addr: str
    to: str
    reply_to: str
    subject: str
    body: str

    @classmethod
    def compose(cls, tenant: TenantConfig, submission: Submission, client: str) -> "OutboundMessage":
        """Build the transcript sent to the tenant's recipient."""
        body = (
            f"Site: {tenant.key}\n"
            f"From: {submission.name} <{submission.email}>\n"
            f"IP: {client}\n"
            f"\n"
            f"{submission.message}\n"
        )
        return cls(
            from_addr=tenant.from_addr,
            to=tenant.to,
            reply_to=f"{submission.name} <{submission.email}>",
            subject=f"{tenant.subject_prefix} {SUBJECT_SUFFIX}".strip(),
            body=body,
        )


class ContactResponse(BaseModel):
    ok: bool
