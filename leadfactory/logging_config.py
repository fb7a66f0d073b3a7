# leadfactory/logging_config.py
from __future__ import annotations
import os, sys, logging, logging.config
from pathlib import Path

_CONCERN_LOGGERS = ("orchestrator", "dispatch", "autopilot", "replies", "crm", "store", "llm", "fetch", "relay")

def setup_logging() -> None:
    """
    Configure console + rotating file logging using dictConfig.
    Tunables via env:
      LOG_LEVEL=INFO|DEBUG|...
      LOG_FILE=logs/leadfactory.log
      LOG_MAX_BYTES=5242880 (5MB)
      LOG_BACKUPS=3
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_file = Path(os.getenv("LOG_FILE", "logs/leadfactory.log"))
    log_file.parent.mkdir(parents=True, exist_ok=True)
    max_bytes = int(os.getenv("LOG_MAX_BYTES", "5242880"))
    backups = int(os.getenv("LOG_BACKUPS", "3"))

    loggers = {
        "uvicorn.error": {"handlers": ["console", "file"], "level": level, "propagate": False},
        "uvicorn.access": {"handlers": ["console", "file"], "level": level, "propagate": False},
    }
    for name in _CONCERN_LOGGERS:
        loggers[name] = {"handlers": ["console", "file"], "level": level, "propagate": False}

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "level": level,
                "formatter": "plain",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_file),
                "maxBytes": max_bytes,
                "backupCount": backups,
                "encoding": "utf-8",
                "level": "DEBUG",
                "formatter": "plain",
            },
        },
        "loggers": loggers,
        "root": {"handlers": ["console", "file"], "level": level},
    }
    logging.config.dictConfig(config)
