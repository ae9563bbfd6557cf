"""Multi-tenant contact-form intake gateway.

This package accepts untrusted HTTP submissions on behalf of many
independently configured sites and decides, for each one, whether it is
authentic, within quota, well-formed and safe to hand off for delivery:

- Per-site configuration loaded once from an INI file and the environment
- Per-site CORS origin policy
- Token-bucket rate limiting per (site, client)
- Optional HMAC-SHA256 request signatures per site
- JSON and form-encoded payloads with honeypot validation
- SMTP delivery via aiosmtplib
- Prometheus metrics and a FastAPI HTTP surface

Example:
    Basic usage with the FastAPI application::

        from form_courier.api import create_app
        from form_courier.config_loader import load_settings
        from form_courier.mailer import SmtpMailSender
        from form_courier.pipeline import IntakePipeline

        settings = load_settings()
        pipeline = IntakePipeline(settings, SmtpMailSender(settings.smtp))
        app = create_app(pipeline)
"""

__version__ = "0.1.0"
