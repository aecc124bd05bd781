"""Cron logging: stdout + one file per script.

CRON_LOG_DIR (default logs/) and CRON_LOG_LEVEL (default INFO) are read on first use.
"""

import logging
import os
from pathlib import Path

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def get_logger(script_name: str) -> logging.Logger:
    """Return a logger that writes to stdout and <CRON_LOG_DIR>/cron_<script_name>.log."""
    logger = logging.getLogger(f"cron.{script_name}")
    if logger.handlers:
        return logger
    level = logging.getLevelName((os.getenv("CRON_LOG_LEVEL") or "INFO").strip().upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)

    log_dir = Path(os.getenv("CRON_LOG_DIR") or "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter(_FORMAT)

    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    fh = logging.FileHandler(log_dir / f"cron_{script_name}.log", encoding="utf-8")
    fh.setFormatter(fmt)
    logger.addHandler(fh)
    return logger
