"""
Process-wide logging setup.

Everything goes to stdout in a single-line format so Railway / Render and
Gunicorn's own error log interleave cleanly.
"""
import logging
import sys

from mindwell.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install the stdout handler on the root logger (idempotent)."""
    global _configured
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # APScheduler logs every job run at INFO; keep only its warnings.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    _configured = True
