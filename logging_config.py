import logging
import logging.handlers
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers added by setup_logging, replaced on the next call
_installed_handlers: list = []


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None,
                  max_file_size: int = 10 * 1024 * 1024, backup_count: int = 5) -> logging.Logger:
    """Configure the root logger once for the whole service.

    Logs always go to stdout. When log_file is given, a rotating file handler is added as well.
    Calling this again replaces the handlers installed by a previous call.
    """
    root = logging.getLogger()
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    root.setLevel(level)

    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    _installed_handlers.append(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        _installed_handlers.append(file_handler)

    for handler in _installed_handlers:
        root.addHandler(handler)

    # uvicorn access logs are noisy at DEBUG
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
