import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, force: bool = False) -> logging.Logger:
    """
    Route turnscout's log records to stderr and, optionally, a file.

    stdout stays free for command output such as ``extract --json``. The
    level is always applied; handlers from an earlier call are kept unless
    ``force`` is set.

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Optional file that receives the same records
        force: Replace handlers installed by an earlier call

    Returns:
        The configured ``turnscout`` logger
    """
    logger = logging.getLogger("turnscout")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if force or not logger.handlers:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
        if log_file:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        formatter = logging.Formatter(LOG_FORMAT)
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    logger.propagate = False
    return logger
