import logging
import os
import sys
from pathlib import Path

LOG_FILE_NAME = "milestrack.log"
DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "milestrack" / "logs"

DETAILED_FORMAT = '[%(asctime)s] %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _debug_enabled() -> bool:
    return os.getenv('MILESTRACK_DEBUG', '').lower() in ('1', 'true', 'yes')


def console_level() -> int:
    """Console level from MILESTRACK_DEBUG / MILESTRACK_LOG_LEVEL; WARNING when unset."""
    if _debug_enabled():
        return logging.DEBUG
    env_level = os.getenv('MILESTRACK_LOG_LEVEL', '').upper()
    if env_level:
        return getattr(logging, env_level, logging.WARNING)
    return logging.WARNING


def log_dir() -> Path:
    """Directory for the detailed log file; MILESTRACK_LOG_DIR overrides the default."""
    override = os.getenv('MILESTRACK_LOG_DIR')
    return Path(override).expanduser() if override else DEFAULT_LOG_DIR


def setup_logging():
    """Set up logging configuration for milestrack package with environment-based levels."""
    is_debug = _debug_enabled()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        '%(levelname)-8s [%(name)s] %(message)s' if is_debug
        else '%(levelname)s: %(message)s'
    ))
    console_handler.setLevel(console_level())

    logger = logging.getLogger('milestrack')
    logger.setLevel(logging.DEBUG)  # Logger accepts all, handlers filter
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.addHandler(console_handler)

    # File handler (always detailed); skipped when the directory is not writable
    directory = log_dir()
    try:
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(directory / LOG_FILE_NAME, encoding='utf-8')
    except OSError as e:
        logger.debug(f"File logging disabled: {e}")
    else:
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, DATE_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger

# Initialize logging when package is imported
setup_logging()

def get_logger(name: str = None):
    """Get a logger instance for a specific module."""
    if name:
        return logging.getLogger(f'milestrack.{name}')
    return logging.getLogger('milestrack')
