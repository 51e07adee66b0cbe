import logging
import sys
from typing import Optional

from config import LOG_DATE_FORMAT, LOG_FORMAT, LOG_LEVEL

# Every module logs under document_intake.<module path>
ROOT_LOGGER_NAME = "document_intake"

_logger = logging.getLogger(ROOT_LOGGER_NAME)


def configure_logging(
    level: str = LOG_LEVEL, fmt: str = LOG_FORMAT, datefmt: str = LOG_DATE_FORMAT
) -> logging.Logger:
    """
    Attach a single stdout handler to the document_intake logger.
    Calling again replaces the level and format instead of stacking handlers.
    """
    _logger.setLevel(level.upper())
    if not _logger.handlers:
        _logger.addHandler(logging.StreamHandler(sys.stdout))
    for handler in _logger.handlers:
        handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return _logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if name:
        return _logger.getChild(name)
    return _logger


configure_logging()
