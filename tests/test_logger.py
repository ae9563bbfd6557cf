import json
import logging

from form_courier.logger import JsonFormatter, RequestLogger, configure_logging, get_logger, parse_level


def test_get_logger_returns_named_logger():
    logger = get_logger("FormCourier.Test")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "FormCourier.Test"
    assert get_logger().name == "FormCourier"


def test_parse_level():
    assert parse_level("DEBUG") == logging.DEBUG
    assert parse_level("warn") == logging.WARNING
    assert parse_level(None) == logging.INFO
    assert parse_level("chatty") == logging.INFO


def test_request_logger_appends_bound_fields(caplog):
    log = RequestLogger(get_logger("FormCourier.Test")).bind(tenant="acme", client="1.2.3.4")

    with caplog.at_level(logging.INFO, logger="FormCourier.Test"):
        log.warning("rate limited")

    record = caplog.records[-1]
    assert record.getMessage() == "rate limited tenant=acme client=1.2.3.4"
    assert record.fields == {"tenant": "acme", "client": "1.2.3.4"}
    assert record.base_msg == "rate limited"


def test_bind_does_not_mutate_parent(caplog):
    parent = RequestLogger(get_logger("FormCourier.Test"), {"method": "POST"})
    child = parent.bind(tenant="acme")

    assert parent.fields == {"method": "POST"}
    assert child.fields == {"method": "POST", "tenant": "acme"}


def test_extra_is_merged_for_one_call(caplog):
    log = RequestLogger(get_logger("FormCourier.Test"), {"tenant": "acme"})

    with caplog.at_level(logging.INFO, logger="FormCourier.Test"):
        log.info("intake finished", extra={"status": 200})
        log.info("next")

    first, second = caplog.records[-2:]
    assert first.fields == {"tenant": "acme", "status": 200}
    assert second.fields == {"tenant": "acme"}


def test_json_formatter_renders_fields():
    log = RequestLogger(get_logger("FormCourier.Test"), {"tenant": "acme"})
    captured = []

    class Capture(logging.Handler):
        def emit(self, record):
            captured.append(JsonFormatter().format(record))

    logger = log.logger
    handler = Capture()
    logger.addHandler(handler)
    old_level = logger.level
    logger.setLevel(logging.INFO)
    try:
        log.info("sent %d", 1, extra={"outcome": "sent"})
    finally:
        logger.removeHandler(handler)
        logger.setLevel(old_level)

    payload = json.loads(captured[0])
    assert payload["msg"] == "sent 1"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "FormCourier.Test"
    assert payload["tenant"] == "acme"
    assert payload["outcome"] == "sent"


def test_configure_logging_installs_json_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("debug", "json")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

        configure_logging("error", "text")
        assert root.level == logging.ERROR
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
