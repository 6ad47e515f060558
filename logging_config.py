"""Logging for the URL shortener.

Every module logs under a child of the `url_shortener` logger:

- url_shortener.store: journal replay and appends
- url_shortener.auth: rejected shorten attempts
- url_shortener.api: created short URLs and invalid input
- url_shortener.web: one line per request (LoggingMiddleware)
"""

import logging
import sys
from typing import Optional


LOGGER_NAME = "url_shortener"
COMPONENTS = ("store", "auth", "api", "web")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Logger for one part of the service, or the parent logger"""
    if component is None:
        return logging.getLogger(LOGGER_NAME)
    if component not in COMPONENTS:
        raise ValueError(f"Unknown logging component: {component}")
    return logging.getLogger(f"{LOGGER_NAME}.{component}")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Attach handlers to the parent logger; the component loggers propagate to it.

    Uvicorn's access log is quieted to WARNING since the web component
    already logs each request with its duration.

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Optional log file, written alongside stdout

    Returns:
        The parent `url_shortener` logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = get_logger()
    logger.setLevel(numeric_level)
    # create_app may run more than once per process
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for component in COMPONENTS:
        get_logger(component).setLevel(logging.NOTSET)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return logger
