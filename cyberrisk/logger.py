#!/usr/bin/env python3
"""
Cyber Risk Register - Logging
Per-component loggers under the "cyber-risk" namespace. Each component writes
to its own rotating file in data/logs; warnings and above also go to stderr.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

try:
    from .config import config
    from .paths import paths
except ImportError:
    from config import config
    from paths import paths

NAMESPACE = 'cyber-risk'
LOG_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _level(value, fallback: int) -> int:
    """Accept 'debug', 'INFO', 10 ...; anything unrecognised is *fallback*."""
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).upper())
    return resolved if isinstance(resolved, int) else fallback


class RiskLogger:
    """Registry of component loggers sharing one handler layout."""

    _loggers: dict = {}

    @staticmethod
    def log_file(name: str) -> Path:
        return paths.logs / f"{name}.log"

    @classmethod
    def _handlers(cls, name: str, level: int):
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        paths.logs.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            cls.log_file(name),
            maxBytes=int(config.get('logging.max_bytes', 10 * 1024 * 1024)),
            backupCount=int(config.get('logging.backup_count', 30)),
            encoding='utf-8',
        )
        rotating.setLevel(level)
        rotating.setFormatter(formatter)

        console = logging.StreamHandler()
        console.setLevel(_level(config.get('logging.console_level', 'WARNING'),
                                logging.WARNING))
        console.setFormatter(formatter)
        return rotating, console

    @classmethod
    def get_logger(cls, name: str, level: int = None) -> logging.Logger:
        """Logger for component *name*, created on first use."""
        existing = cls._loggers.get(name)
        if existing is not None:
            return existing

        if level is None:
            level = _level(config.get('logging.level', 'INFO'), logging.INFO)

        logger = logging.getLogger(f"{NAMESPACE}.{name}")
        logger.setLevel(level)
        logger.handlers.clear()
        for handler in cls._handlers(name, level):
            logger.addHandler(handler)

        cls._loggers[name] = logger
        return logger

    @classmethod
    def set_level(cls, level):
        """Change the level of every component logger and its log file."""
        level = _level(level, logging.INFO)
        for logger in cls._loggers.values():
            logger.setLevel(level)
            for handler in logger.handlers:
                if isinstance(handler, RotatingFileHandler):
                    handler.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return RiskLogger.get_logger(name)
