"""
Application logging configuration.

Every module logs through the shared "unidrive" logger. Backend failures,
trash sweeps and partial merges are logged in full here while the
exception handlers return short, safe messages to clients.
"""
import logging
import sys

from unidrive.config import settings

# HTTP and AWS clients used by the storage backends log every request at INFO
_NOISY_LIBRARIES = ("httpx", "httpcore", "botocore", "boto3", "s3transfer")


def setup_logging() -> logging.Logger:
    """
    Configure and return the application logger.

    Output goes to stdout as "timestamp - name - level - message". The level
    comes from ``LOG_LEVEL``; backend client libraries are held at WARNING
    so per-request chatter does not drown drive events.

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger("unidrive")
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    # Attach the handler only on the first call so records are not duplicated
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(handler)

        for name in _NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger
