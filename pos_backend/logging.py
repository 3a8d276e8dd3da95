import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class AppLogger:
    """Global logger configuration for the application.

    Replaces loguru's default sink with a single stderr sink at the given level.
    """
    def __init__(self, log_level: str = "INFO") -> None:
        logger.remove()
        logger.configure(extra={"name": "pos_backend"})
        logger.add(sink=sys.stderr, level=log_level.upper(), format=LOG_FORMAT)
        self.logger = logger


def configure_logging(log_level: str) -> AppLogger:
    """Install the application sink. Called once by the app factory."""
    return AppLogger(log_level)


def get_logger(name: str = None):
    """Get a logger bound to `name`, using whatever sinks are installed."""
    if name:
        return logger.bind(name=name)
    return logger
