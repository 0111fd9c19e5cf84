from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "nexus"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(log_dir: str = "logs", level: str = "INFO", *, console: bool = True) -> logging.Logger:
    """
    Configure the `nexus` logger tree: rotating `nexus.log` plus a bare
    console stream. Safe to call more than once.
    """
    os.makedirs(log_dir, exist_ok=True)
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root.propagate = False

    files = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
    if not files:
        fh = RotatingFileHandler(os.path.join(log_dir, "nexus.log"), maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(fh)

    streams = [h for h in root.handlers if type(h) is logging.StreamHandler]
    if console and not streams:
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(sh)

    return root
