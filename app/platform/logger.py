import logging
import os
from logging.handlers import RotatingFileHandler

from app.platform.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

log_dir = settings.LOG_DIR or os.path.join(os.getcwd(), "logs")
os.makedirs(log_dir, exist_ok=True)

log_file_path = os.path.join(log_dir, "leads_service.log")


def get_logger(name: str):
    """
    Logger writing to the console and to logs/leads_service.log.

    Webhook outcomes are only visible here and in the webhook_logs table, so
    the file rotates (10MB x 5) instead of being truncated.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in (
        RotatingFileHandler(log_file_path, maxBytes=10_000_000, backupCount=5, encoding="utf-8"),
        logging.StreamHandler(),
    ):
        handler.setFormatter(formatter)
        handler.setLevel(level)
        logger.addHandler(handler)

    # The root logger configured in app.main would print every line twice
    logger.propagate = False
    return logger
