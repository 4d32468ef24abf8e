import logging
import sys
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Client libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging for the API process and the maintenance scripts.

    Records go to stdout and, when ``log_file`` is set, to that file as well.
    SQL echo is controlled separately by ``DATABASE_ECHO``.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
