import logging
import sys


def setup_logging(level: str = "WARNING") -> None:
    """
    Configure application-wide logging on stderr; stdout carries the conversation.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if root_logger.handlers:
        # Already configured (e.g., by pytest); only adjust the level.
        return

    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
