# logging_config.py
"""Logging setup for the PDC backend."""
import logging
import sys

import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | int | None = None) -> None:
     """
     Attach a single stdout handler to the root logger.

     Safe to call more than once; only the level is updated on repeat calls.
     """
     global _configured
     root = logging.getLogger()
     root.setLevel(level or config.LOG_LEVEL)
     if _configured:
          return

     handler = logging.StreamHandler(sys.stdout)
     handler.setFormatter(logging.Formatter(LOG_FORMAT))
     root.addHandler(handler)

     # SQL echo is controlled by SQL_ECHO, keep the engine logger quiet otherwise
     logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
     _configured = True
