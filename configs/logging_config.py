"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)`; this only decides where
records go and at which level.
"""

import logging
import os
import sys
from typing import Optional


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(environment: str = "dev", level: Optional[str] = None) -> None:
    """
    Install a single stdout handler on the root logger.

    `dev` logs at DEBUG, `prod` at INFO. PLAKAIT_LOG_LEVEL (or `level`)
    overrides both.
    """
    if level is None:
        level = os.getenv("PLAKAIT_LOG_LEVEL")
    if level is None:
        level = "DEBUG" if environment == "dev" else "INFO"

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # The HTTP client is chatty at DEBUG.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
