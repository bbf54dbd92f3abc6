import logging
from logging import Logger
from logging import config as logging_config

from permcheck import config
from permcheck.common.exception import ConfigError

# Console logging used until, and unless, the logging component says otherwise
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "root": {"level": "INFO", "handlers": ["consoleHandler"]},
    "loggers": {
        "permcheck": {
            "level": "INFO",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "formatter_formatter",
            "stream": "ext://sys.stderr",
        }
    },
    "formatters": {
        "formatter_formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

_default_applied = False


def apply_default_configuration() -> None:
    logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)


def init_logging(loggername: str) -> Logger:
    """Return the `permcheck.<loggername>` logger.

    The default console configuration is applied on the first call. When the
    `logging` configuration component holds a `[loggers]` section, it is
    applied on top with :func:`logging.config.fileConfig`; if it cannot be
    applied the default configuration is restored and the error is logged.
    """
    global _default_applied

    if not _default_applied:
        apply_default_configuration()
        _default_applied = True

    logger = logging.getLogger(f"permcheck.{loggername}")

    try:
        logging_conf = config.get_config("logging")
    except ConfigError as e:
        logger.error("Logging configuration error: %s", e)
        return logger

    if logging_conf.has_section("loggers"):
        try:
            logging_config.fileConfig(logging_conf, disable_existing_loggers=False)
        except Exception as e:
            apply_default_configuration()
            logger.error("Logging configuration error, using the default configuration: %s", e)

    return logger
