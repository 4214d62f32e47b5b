"""
Logging setup for the multi-threaded pipeline.

Every record carries the name of the thread that emitted it, so capture,
recognizer and UI output can be told apart in one stream:

    12:00:01  INFO   recognizer  Recognizer stage ready
"""

import logging
import logging.handlers
import os
import time
from functools import wraps

from gesture_pipeline.utils.config import LoggingConfig

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(threadName)-10s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(threadName)-10s %(name)-36s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(config: LoggingConfig = None) -> logging.Logger:
    """Install console (and optional rotating file) handlers on the root logger.

    Calling it again replaces the existing handlers.
    """
    config = config or LoggingConfig()
    level = getattr(logging, str(config.level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console)

    if config.file:
        log_dir = os.path.dirname(config.file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=int(config.max_size_mb) * 1024 * 1024,
            backupCount=int(config.backup_count),
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    return root_logger


def log_timing(func):
    """Log how long a one-off step (such as loading a model) took."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        logger.info("%s finished in %.1fms", func.__name__,
                    (time.perf_counter() - start) * 1000)
        return result

    return wrapper
