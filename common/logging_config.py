import logging
import os
import re
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

MASK = '***MASKED***'

# Payer addresses travel in the x-paid-by header and in paid_by arguments
PAYER_PATTERN = re.compile(r'((?:x-)?paid[_-]by["\']?\s*[:=]\s*["\']?)([^"\'}\s\]]+)', re.IGNORECASE)


class SensitiveDataFilter(logging.Filter):
    """Masks payer addresses in log messages and their format arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_payers(record.msg)
        if isinstance(record.args, dict):
            record.args = {key: mask_payers(value) for key, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(mask_payers(arg) for arg in record.args)
        return True


def mask_payers(value):
    if not isinstance(value, str):
        return value
    return PAYER_PATTERN.sub(rf'\1{MASK}', value)


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Attach a masked stdout handler to a component's root logger.

    Args:
        component_name: Logger namespace to configure ('cli' or 'uploader')
        log_level: Level name; falls back to the LOG_LEVEL env var, then INFO

    Returns:
        The configured logger. Calling again only updates the level.
    """
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(SensitiveDataFilter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
