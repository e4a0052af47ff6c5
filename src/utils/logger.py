import logging

from rich.logging import RichHandler

from utils.config import load_settings

# loggers owned by the ASGI server, routed through the same handler by main.py
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class CenteredFormatter(logging.Formatter):
    longest_name_length = 12  # Initial default width

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=12):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        width = CenteredFormatter.longest_name_length
        # copy so other handlers still see the original name
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.center(width)
        return super().format(record)


def _log_level() -> int:
    return logging.DEBUG if load_settings().debug else logging.INFO


def _rich_handler(level: int) -> RichHandler:
    handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    handler.setLevel(level)
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.
    """
    if name is None:
        name = "storefront"
    logger = logging.getLogger(name)
    log_level = _log_level()
    logger.setLevel(log_level)

    if not logger.handlers:
        logger.addHandler(_rich_handler(log_level))
        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized with RichHandler.")

    return logger


def route_server_logs() -> None:
    """Replace uvicorn's default handlers with the rich one."""
    level = _log_level()
    for name in SERVER_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.addHandler(_rich_handler(level))
        logger.setLevel(level)
        logger.propagate = False
