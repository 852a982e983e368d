import logging
import sys

from app.config import settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stdout handler on the root logger.

    Safe to call more than once; an existing handler installed here is
    reused instead of stacking duplicates.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    for handler in root.handlers:
        if getattr(handler, "_coordination_handler", False):
            return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._coordination_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # SQL echo is too chatty at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
