import logging
import re
import sys
from typing import Optional

from sketch_timelapse.common.datetime_utils import clock_time

STATUS_TAG = "[sketch-timelapse]"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_configured: set[str] = set()


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, level or "INFO")
    logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    _configured.add(name)

    return logger


def set_level(level: str) -> None:
    """Apply a level to every logger created through setup_logger."""
    log_level = getattr(logging, level)
    for name in _configured:
        logging.getLogger(name).setLevel(log_level)


def strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


def status_message(text: str) -> str:
    """Single status line as shown to the rendering client."""
    return strip_ansi(f"{clock_time()} {STATUS_TAG} {text}")
