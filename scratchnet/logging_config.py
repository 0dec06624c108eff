"""
Console and file logging for scratchnet. Training runs one thread per worker,
so records carry the thread name.
"""
import logging
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(threadName)s] %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route the 'scratchnet' logger to stdout and, optionally, to a file.
    Repeated calls replace the handlers installed by earlier ones.

    Args:
        level: Level number or name ("debug", "INFO", ...).
        log_file: Optional path; the file is overwritten.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {level}")

    logger = logging.getLogger("scratchnet")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger
