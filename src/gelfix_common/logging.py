from __future__ import annotations

import logging
import sys

from gelfix_common.settings import get_settings


def setup_logging(name: str = "gelfix") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    level = logging.getLevelName(get_settings().log_level.strip().upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    h = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    return logger
