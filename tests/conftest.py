import pytest
from fastapi.testclient import TestClient

from form_courier.api import create_app
from form_courier.config_loader import Settings
from form_courier.models import SmtpSettings, TenantConfig
from form_courier.pipeline import IntakePipeline
from form_courier.rate_limit import RateLimiter
from form_courier.registry import TenantRegistry


class RecordingSender:
    """MailSender double that records every hand-off."""

    def __init__(self):
        self.sent = []

    async def send(self, tenant, message):
        self.sent.append((tenant, message))


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_tenant(**overrides) -> TenantConfig:
    values = dict(
        key="acme",
        to="ops@example.com",
        subject_prefix="[Contact]",
        from_addr="noreply@example.com",
        smtp=SmtpSettings(host="smtp.example.com", port=587, user="user", password="pass"),
    )
    values.update(overrides)
    return TenantConfig(**values)


@pytest.fixture
def make_tenant():
    return build_tenant


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_pipeline(sender, clock):
    """Build a pipeline over the given tenants (default: one ``acme`` site)."""

    def factory(*tenants, sender_override=None, **overrides):
        settings_kwargs = dict(rate_burst=3, rate_refill_minutes=10)
        settings_kwargs.update(overrides)
        settings = Settings(registry=TenantRegistry(tenants or [build_tenant()]), **settings_kwargs)
        limiter = RateLimiter(max_buckets=settings.rate_max_buckets, clock=clock)
        return IntakePipeline(settings, sender_override or sender, limiter=limiter)

    return factory


@pytest.fixture
def make_client(make_pipeline):
    def factory(*tenants, **overrides):
        return TestClient(create_app(make_pipeline(*tenants, **overrides)))

    return factory
