# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

This module provides a pre-configured FastAPI application that reads its
settings from the environment (and the optional ``FC_CONFIG`` INI file) at
import time.

Usage:
    uvicorn form_courier.server:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

from .api import create_app
from .config_loader import load_settings
from .logger import configure_logging
from .mailer import SmtpMailSender
from .pipeline import IntakePipeline

_settings = load_settings()
configure_logging(_settings.log_level, _settings.log_format)

app = create_app(IntakePipeline(_settings, SmtpMailSender(_settings.smtp)))
