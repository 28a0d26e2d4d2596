import logging
import logging.config
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


class Config:
    SEED_PATH = os.getenv("BUDGETBOOK_SEED_PATH", "data/seed.json")
    CURRENCY = os.getenv("BUDGETBOOK_CURRENCY", "USD")
    LOG_LEVEL = os.getenv("BUDGETBOOK_LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("BUDGETBOOK_LOG_FILE") or None
    OWNER_ID = os.getenv("BUDGETBOOK_OWNER", "demo-user")


def logging_config(level: str = Config.LOG_LEVEL, log_file: Optional[str] = Config.LOG_FILE) -> dict:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": level,
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 5,
            "level": level,
            "encoding": "utf-8",
        }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": LOG_FORMAT}},
        "handlers": handlers,
        "loggers": {
            "budgetbook": {"handlers": list(handlers), "level": level, "propagate": False},
        },
    }


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    logging.config.dictConfig(logging_config(level or Config.LOG_LEVEL, log_file or Config.LOG_FILE))
