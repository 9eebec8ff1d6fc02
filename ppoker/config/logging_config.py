"""Logging configuration for the application."""

import logging
import logging.handlers

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Set up application logging.

    Log records always go to stderr; when log_file is given they are also
    written to a rotating file.

    Args:
        level: Level name such as "DEBUG" or "INFO".
        log_file: Optional path of the log file.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("ppoker")
    logger.setLevel(level.upper())

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        # Keep 5 backup files, max 1MB each
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
