"""Loguru configuration shared by the desktop host and the backend process."""
import sys

from loguru import logger

from config import LOGS_DIR

_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {process} | {name}:{function}:{line} - {message}"
_CONSOLE_FORMAT = "{time:HH:mm:ss} | {level: <8} | {message}"


def setup_logging(filename, console_level="INFO"):
    """Configure loguru file + stderr logging with rotation.

    Returns the path of the log file.
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOGS_DIR / filename
    logger.remove()
    logger.add(
        str(log_file),
        rotation="5 MB",
        retention=5,
        format=_FILE_FORMAT,
        enqueue=True,
    )
    logger.add(sys.stderr, level=console_level, format=_CONSOLE_FORMAT)

    def _exception_hook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.opt(exception=(exc_type, exc_value, exc_tb)).critical("Unhandled exception: {}", exc_value)

    sys.excepthook = _exception_hook
    return log_file
