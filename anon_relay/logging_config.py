import logging
from typing import Optional

from pythonjsonlogger import jsonlogger


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure structured JSON logging to stderr and, optionally, a file."""
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s"
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [handler]

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = handlers

    # httpx logs every Bot API request (with the token in the URL) at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
