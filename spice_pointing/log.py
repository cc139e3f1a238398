# log.py - logger helper shared by the command-line tool.
#
# Library modules log through logging.getLogger(__name__) and never attach
# handlers themselves; the CLI calls get_logger() once to get output.

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "spice_pointing"


def get_logger(logger: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Return the package logger.

    - If a logger is provided, use it.
    - Otherwise use the "spice_pointing" logger, attaching a StreamHandler
      with a compact formatter if it has no handlers yet (level INFO).
    """
    if logger is not None:
        return logger
    lg = logging.getLogger(LOGGER_NAME)
    if not lg.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        lg.addHandler(h)
        lg.setLevel(logging.INFO)
    return lg
