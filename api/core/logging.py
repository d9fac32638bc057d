"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)`; this only wires the root
handler once at startup.
"""

from __future__ import annotations

import logging

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = (level or config.log_level()).upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
