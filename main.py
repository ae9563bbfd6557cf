import sys

import uvicorn

from form_courier.api import create_app
from form_courier.config_loader import load_settings
from form_courier.errors import ConfigError
from form_courier.logger import configure_logging, get_logger
from form_courier.mailer import SmtpMailSender
from form_courier.pipeline import IntakePipeline

logger = get_logger("FormCourier")


if __name__ == "__main__":
    # Settings come from the INI file named by FC_CONFIG (default: config.ini)
    # with environment variables as fallbacks; see form_courier.config_loader.
    try:
        settings = load_settings()
        host, port = settings.host, settings.port
    except ConfigError as exc:
        configure_logging()
        logger.error("Invalid configuration: %s", exc)
        sys.exit(1)

    configure_logging(settings.log_level, settings.log_format)
    pipeline = IntakePipeline(settings, SmtpMailSender(settings.smtp))
    app = create_app(pipeline)

    logger.info("form-courier listening addr=%s sites=%d", settings.listen_addr, len(settings.registry))
    uvicorn.run(app, host=host, port=port, log_config=None)
