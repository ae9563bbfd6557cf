# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Delivery of composed messages.

The intake pipeline only knows the :class:`MailSender` protocol, a single
``send`` coroutine. :class:`SmtpMailSender` is the production transport built
on aiosmtplib; alternate transports (a queue, a test double) implement the
same method and are injected into the pipeline.

TLS behavior follows the SMTP server settings:
- Port 465 with ssl=True: Direct TLS (implicit TLS)
- Other ports with ssl=True: STARTTLS (upgrade plain to TLS)
- ssl=False: Plain SMTP (no encryption)

Example:
    Sending through the global SMTP server unless the site overrides it::

        sender = SmtpMailSender(settings.smtp)
        await sender.send(tenant, OutboundMessage.compose(tenant, submission, ip))
"""

from __future__ import annotations

import asyncio
from email.message import EmailMessage
from typing import Protocol, runtime_checkable

import aiosmtplib

from .errors import DeliveryError
from .logger import get_logger
from .models import OutboundMessage, SmtpSettings, TenantConfig

CONNECT_TIMEOUT = 15.0
SEND_TIMEOUT = 30.0

logger = get_logger("FormCourier.Mailer")


@runtime_checkable
class MailSender(Protocol):
    """Capability the pipeline uses to hand off a composed message."""

    async def send(self, tenant: TenantConfig, message: OutboundMessage) -> None:
        """Deliver ``message`` for ``tenant``; raise on any failure."""
        ...


def build_email(message: OutboundMessage) -> EmailMessage:
    """Convert an :class:`OutboundMessage` into a plain-text EmailMessage."""
    email_msg = EmailMessage()
    email_msg["From"] = message.from_addr
    email_msg["To"] = message.to
    email_msg["Reply-To"] = message.reply_to
    email_msg["Subject"] = message.subject
    email_msg.set_content(message.body)
    return email_msg


class SmtpMailSender:
    """Send messages over SMTP, one connection per message.

    Attributes:
        default_smtp: Server used for sites without their own override.
    """

    def __init__(self, default_smtp: SmtpSettings | None):
        self.default_smtp = default_smtp

    def resolve_server(self, tenant: TenantConfig) -> SmtpSettings:
        """Return the SMTP server for ``tenant``.

        Raises:
            DeliveryError: If neither the site nor the process configures one.
        """
        server = tenant.smtp or self.default_smtp
        if server is None:
            raise DeliveryError(f"smtp config missing for site {tenant.key}")
        return server

    async def _connect(self, server: SmtpSettings) -> aiosmtplib.SMTP:
        if server.ssl and server.port == 465:
            smtp = aiosmtplib.SMTP(hostname=server.host, port=server.port, start_tls=False, use_tls=True, timeout=10.0)
        elif server.ssl:
            smtp = aiosmtplib.SMTP(hostname=server.host, port=server.port, start_tls=True, use_tls=False, timeout=10.0)
        else:
            smtp = aiosmtplib.SMTP(hostname=server.host, port=server.port, start_tls=False, use_tls=False, timeout=10.0)

        async def _do_connect():
            await smtp.connect()
            if server.user and server.password:
                await smtp.login(server.user, server.password)

        try:
            await asyncio.wait_for(_do_connect(), timeout=CONNECT_TIMEOUT)
        except BaseException:
            smtp.close()
            raise
        return smtp

    async def send(self, tenant: TenantConfig, message: OutboundMessage) -> None:
        """Deliver ``message`` through the site's SMTP server.

        Raises:
            DeliveryError: Wrapping any connection, authentication, timeout
                or protocol failure.
        """
        server = self.resolve_server(tenant)
        try:
            email_msg = build_email(message)
        except ValueError as exc:
            raise DeliveryError(f"cannot build message for site {tenant.key}: {exc}") from exc
        try:
            smtp = await self._connect(server)
            try:
                await asyncio.wait_for(
                    smtp.send_message(email_msg, sender=message.from_addr),
                    timeout=SEND_TIMEOUT,
                )
            finally:
                try:
                    await smtp.quit()
                except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError):
                    logger.debug("SMTP quit failed for site %s", tenant.key)
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as exc:
            raise DeliveryError(f"smtp send failed for site {tenant.key}: {exc}") from exc
        logger.debug("Delivered message for site %s via %s:%s", tenant.key, server.host, server.port)
