import logging
import sys

from backoffice.config import settings

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = None):
    """Attach a stdout handler to the package logger (idempotent)."""
    log = logging.getLogger("backoffice")
    log.setLevel((level or settings.LOG_LEVEL).upper())
    if not log.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(h)
    return log
