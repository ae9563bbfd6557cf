import logging
import runpy
from pathlib import Path

import pytest

MAIN = Path(__file__).resolve().parents[1] / "main.py"


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _env(monkeypatch, tmp_path, **overrides):
    values = {
        "FC_CONFIG": str(tmp_path / "absent.ini"),
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": "587",
        "SMTP_USER": "mailer@example.com",
        "SMTP_PASS": "pw",
        "SITES": "acme",
        "ACME_TO": "ops@acme.test",
    }
    values.update(overrides)
    for name, value in values.items():
        monkeypatch.setenv(name, value)


def test_bad_listen_address_exits_with_status_1(monkeypatch, tmp_path, restore_root_logging):
    _env(monkeypatch, tmp_path, LISTEN_ADDR="foo")
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda *args, **kwargs: calls.append(kwargs))

    with pytest.raises(SystemExit) as excinfo:
        runpy.run_path(str(MAIN), run_name="__main__")

    assert excinfo.value.code == 1
    assert calls == []


def test_valid_configuration_starts_uvicorn(monkeypatch, tmp_path, restore_root_logging):
    _env(monkeypatch, tmp_path, LISTEN_ADDR="127.0.0.1:8282")
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: calls.append(kwargs))

    runpy.run_path(str(MAIN), run_name="__main__")

    assert calls[0]["host"] == "127.0.0.1"
    assert calls[0]["port"] == 8282
