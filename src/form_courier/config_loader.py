# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Process configuration loader.

Settings are read once at startup from an optional INI file (path from
``FC_CONFIG``, default ``config.ini``; a missing file is not an error) with
environment variables as fallbacks. The result is an immutable
:class:`Settings` value, including the :class:`TenantRegistry`, which the
entry point passes explicitly to the intake pipeline.

Example:
    Environment-only configuration::

        SMTP_HOST=smtp.example.com SMTP_PORT=587 SMTP_USER=mailer SMTP_PASS=secret
        SITES=acme,globex
        ACME_TO=ops@acme.test
        ACME_ALLOWED_ORIGINS=https://acme.test,https://www.acme.test
        ACME_SECRET=s3cret
        GLOBEX_TO=hello@globex.test
        GLOBEX_SMTP_HOST=smtp.globex.test

    Equivalent configuration file (config.ini)::

        [smtp]
        host = smtp.example.com
        port = 587
        user = mailer
        password = secret

        [sites]
        keys = acme, globex

        [site:acme]
        to = ops@acme.test
        allowed_origins = https://acme.test, https://www.acme.test
        secret = s3cret

        [site:globex]
        to = hello@globex.test
        smtp_host = smtp.globex.test

Per-site environment variables use the site key upper-cased with every
non-alphanumeric character replaced by ``_`` as prefix (``my-site`` ->
``MY_SITE_TO``).
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from .errors import ConfigError
from .logger import get_logger
from .models import SmtpSettings, TenantConfig
from .rate_limit import DEFAULT_MAX_BUCKETS
from .registry import TenantRegistry

DEFAULT_CONFIG_PATH = "config.ini"
DEFAULT_LISTEN_ADDR = ":3000"
DEFAULT_SUBJECT_PREFIX = "[Contact]"
SITE_SECTION_PREFIX = "site:"

_TRUE = {"1", "t", "true", "y", "yes", "on"}
_FALSE = {"0", "f", "false", "n", "no", "off"}

logger = get_logger("FormCourier.Config")


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration.

    Attributes:
        registry: Configured sites.
        smtp: Global SMTP server, used by sites without an override.
        listen_addr: ``host:port`` to listen on (``:3000`` binds all interfaces).
        rate_burst: Token-bucket capacity per (site, client).
        rate_refill_minutes: Minutes per refilled token.
        rate_max_buckets: Bucket eviction threshold, None for unbounded.
        allow_json: Accept ``application/json`` bodies.
        allow_form: Accept form-encoded bodies.
        max_body_kb: Request body ceiling in KiB.
        log_level: Logging level name.
        log_format: ``text`` or ``json``.
    """

    registry: TenantRegistry = field(default_factory=TenantRegistry)
    smtp: SmtpSettings | None = None
    listen_addr: str = DEFAULT_LISTEN_ADDR
    rate_burst: int = 3
    rate_refill_minutes: int = 1
    rate_max_buckets: int | None = DEFAULT_MAX_BUCKETS
    allow_json: bool = True
    allow_form: bool = True
    max_body_kb: int = 1024
    log_level: str = "info"
    log_format: str = "text"

    @property
    def max_body_bytes(self) -> int:
        return self.max_body_kb * 1024

    @property
    def host(self) -> str:
        host, _, _ = self.listen_addr.rpartition(":")
        return host.strip("[]") or "0.0.0.0"

    @property
    def port(self) -> int:
        _, _, port = self.listen_addr.rpartition(":")
        try:
            return int(port)
        except ValueError:
            raise ConfigError(f"invalid listen address {self.listen_addr!r}") from None


def to_env_key(key: str) -> str:
    """Upper-case ``key`` and replace every non-alphanumeric character with ``_``."""
    return "".join(ch if ch.isascii() and ch.isalnum() else "_" for ch in key.upper())


def split_list(value: str | None) -> list[str]:
    """Split a comma-separated list, dropping blanks."""
    if not value or not value.strip():
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ConfigError(f"{name} must be boolean, got {value!r}")


def parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{name} must be int, got {value!r}") from None


class _Source:
    """Lookup helper: INI option first, then environment variable, then default."""

    def __init__(self, parser: configparser.ConfigParser, environ: Mapping[str, str]):
        self.parser = parser
        self.environ = environ

    def get(self, section: str, option: str, env: str, default: str | None = None) -> str | None:
        if self.parser.has_option(section, option):
            value = self.parser.get(section, option)
            if value.strip():
                return value.strip()
        value = self.environ.get(env, "")
        if value.strip():
            return value.strip()
        return default

    def require(self, section: str, option: str, env: str) -> str:
        value = self.get(section, option, env)
        if value is None:
            raise ConfigError(f"missing {env} (or [{section}] {option})")
        return value

    def get_int(self, section: str, option: str, env: str, default: int) -> int:
        value = self.get(section, option, env)
        return default if value is None else parse_int(env, value)

    def get_bool(self, section: str, option: str, env: str, default: bool) -> bool:
        value = self.get(section, option, env)
        return default if value is None else parse_bool(env, value)


def _load_smtp(source: _Source) -> SmtpSettings:
    try:
        return SmtpSettings(
            host=source.require("smtp", "host", "SMTP_HOST"),
            port=parse_int("SMTP_PORT", source.require("smtp", "port", "SMTP_PORT")),
            user=source.require("smtp", "user", "SMTP_USER"),
            password=source.require("smtp", "password", "SMTP_PASS"),
            ssl=source.get_bool("smtp", "ssl", "SMTP_SSL", False),
        )
    except ValidationError as exc:
        raise ConfigError(f"invalid global SMTP settings: {exc}") from exc


def _site_keys(source: _Source) -> list[str]:
    keys = split_list(source.get("sites", "keys", "SITES"))
    if not keys:
        keys = [
            section[len(SITE_SECTION_PREFIX):]
            for section in source.parser.sections()
            if section.startswith(SITE_SECTION_PREFIX)
        ]
    if not keys:
        raise ConfigError(
            "SITES is required (comma-separated list of site keys, e.g. SITES=my-site,product-alpha)"
        )
    return keys


def _load_site(
    source: _Source,
    key: str,
    smtp: SmtpSettings,
    subject_prefix: str,
    from_addr: str,
) -> TenantConfig:
    section = f"{SITE_SECTION_PREFIX}{key}"
    prefix = to_env_key(key)

    to = source.get(section, "to", f"{prefix}_TO")
    if to is None:
        raise ConfigError(f"missing {prefix}_TO for site {key!r}")

    site_smtp = None
    smtp_host = source.get(section, "smtp_host", f"{prefix}_SMTP_HOST")
    if smtp_host is not None:
        site_smtp = SmtpSettings(
            host=smtp_host,
            port=source.get_int(section, "smtp_port", f"{prefix}_SMTP_PORT", smtp.port),
            user=source.get(section, "smtp_user", f"{prefix}_SMTP_USER", smtp.user),
            password=source.get(section, "smtp_password", f"{prefix}_SMTP_PASS", smtp.password),
            ssl=source.get_bool(section, "smtp_ssl", f"{prefix}_SMTP_SSL", smtp.ssl),
        )

    return TenantConfig(
        key=key,
        to=to,
        allowed_origins=tuple(split_list(source.get(section, "allowed_origins", f"{prefix}_ALLOWED_ORIGINS"))),
        subject_prefix=source.get(section, "subject_prefix", f"{prefix}_SUBJECT_PREFIX", subject_prefix),
        secret=source.get(section, "secret", f"{prefix}_SECRET"),
        smtp=site_smtp,
        from_addr=source.get(section, "from_addr", f"{prefix}_FROM_ADDR", from_addr),
    )


def load_settings(
    environ: Mapping[str, str] | None = None,
    config_path: str | os.PathLike[str] | None = None,
) -> Settings:
    """Build :class:`Settings` from the INI file and the environment.

    Args:
        environ: Environment mapping. Defaults to ``os.environ``.
        config_path: INI file path. Defaults to ``FC_CONFIG`` or ``config.ini``.

    Returns:
        The immutable process settings.

    Raises:
        ConfigError: On a missing required value, a malformed number or
            boolean, an invalid site key or a duplicate site.
    """
    environ = os.environ if environ is None else environ
    path = Path(config_path or environ.get("FC_CONFIG") or DEFAULT_CONFIG_PATH)
    parser = configparser.ConfigParser(interpolation=None)
    if path.exists():
        try:
            parser.read(path)
        except configparser.Error as exc:
            raise ConfigError(f"invalid config file {path}: {exc}") from exc
        logger.info("Loaded configuration file %s", path)
    source = _Source(parser, environ)

    smtp = _load_smtp(source)
    subject_prefix = source.get("mail", "subject_prefix", "SUBJECT_PREFIX", DEFAULT_SUBJECT_PREFIX)
    from_addr = source.get("mail", "from_addr", "FROM_ADDR", smtp.user)

    tenants = []
    for key in _site_keys(source):
        try:
            tenants.append(_load_site(source, key, smtp, subject_prefix, from_addr))
        except ValidationError as exc:
            raise ConfigError(f"invalid configuration for site {key!r}: {exc}") from exc

    burst = source.get_int("limits", "burst", "RATE_LIMIT_BURST", 3)
    refill = source.get_int("limits", "refill_minutes", "RATE_LIMIT_REFILL_MINUTES", 1)
    max_buckets = source.get_int("limits", "max_buckets", "RATE_LIMIT_MAX_BUCKETS", DEFAULT_MAX_BUCKETS)
    max_body_kb = source.get_int("intake", "max_body_kb", "MAX_BODY_KB", 1024)
    if burst <= 0:
        raise ConfigError("RATE_LIMIT_BURST must be positive")
    if refill <= 0:
        raise ConfigError("RATE_LIMIT_REFILL_MINUTES must be positive")
    if max_buckets < 0:
        raise ConfigError("RATE_LIMIT_MAX_BUCKETS must not be negative")
    if max_body_kb <= 0:
        raise ConfigError("MAX_BODY_KB must be positive")

    settings = Settings(
        registry=TenantRegistry(tenants),
        smtp=smtp,
        listen_addr=source.get("server", "listen_addr", "LISTEN_ADDR", DEFAULT_LISTEN_ADDR),
        rate_burst=burst,
        rate_refill_minutes=refill,
        rate_max_buckets=max_buckets or None,
        allow_json=source.get_bool("intake", "allow_json", "ALLOW_JSON", True),
        allow_form=source.get_bool("intake", "allow_form", "ALLOW_FORM", True),
        max_body_kb=max_body_kb,
        log_level=source.get("logging", "level", "LOG_LEVEL", "info"),
        log_format=source.get("logging", "format", "LOG_FORMAT", "text"),
    )
    # listen_addr must carry a numeric port
    settings.port
    logger.info("Configured %d sites: %s", len(settings.registry), ", ".join(settings.registry))
    return settings
