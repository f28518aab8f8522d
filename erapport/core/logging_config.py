# erapport/core/logging_config.py - Logging setup driven by settings
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from erapport.core.config import settings

LOG_FORMATS = {
    "simple": "%(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def setup_logging() -> None:
    """Configure the root logger once: console always, rotating file when LOG_FILE_PATH is set"""
    log_format = LOG_FORMATS.get(settings.LOG_FORMAT, LOG_FORMATS["detailed"])
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.LOG_FILE_PATH:
        log_path = Path(settings.LOG_FILE_PATH)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=settings.LOG_MAX_SIZE,
                backupCount=settings.LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )

    logging.basicConfig(level=settings.LOG_LEVEL, format=log_format, handlers=handlers)

    # SQLAlchemy echoes through its own logger
    if settings.DATABASE_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
