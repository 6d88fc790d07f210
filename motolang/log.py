import sys

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> <cyan>{name}</cyan> {message}"


def configure_logging(level: str = "INFO", sink=None) -> int:
    """Replace loguru's default handler; returns the new handler id."""
    logger.remove()
    return logger.add(sink or sys.stderr, level=level.upper(), format=LOG_FORMAT)
