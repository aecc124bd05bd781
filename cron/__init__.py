"""Scheduled catalog jobs (consistency scan). Run as scripts: python cron/<job>.py"""

from cron.config import config
from cron.db import get_session
from cron.logging import get_logger

__all__ = ["config", "get_logger", "get_session"]
