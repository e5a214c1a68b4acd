from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

_LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
_NOISY_LOGGERS = ("absl", "mediapipe", "uvicorn.access")


class InterceptHandler(logging.Handler):
    """Forward standard logging records (uvicorn, mediapipe) into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        try:
            level_name = logger.level(record.levelname).name
        except ValueError:
            level_name = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level_name, record.getMessage())


def configure_logging(level: str = "INFO", log_file: Optional[Path | str] = None) -> None:
    """Configure Loguru to replace the standard logging handlers."""
    os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")
    logger.remove()
    logger.add(sys.stderr, format=_LOG_FORMAT, level=level, enqueue=True, backtrace=True, diagnose=False)
    if log_file:
        logger.add(str(log_file), level="DEBUG", rotation="10 MB", retention=5, enqueue=True)
    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
