"""Logging configuration for git-worktree-keeper

Every module logs under the ``worktree_keeper`` namespace so a host
application can tune or silence the engine without touching its own
root logger configuration.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAMESPACE = 'worktree_keeper'
PACKAGE_PREFIX = 'git_worktree_keeper.'
LOG_DIR = Path.home() / '.git-worktree-keeper'
LOG_FILE_NAME = 'worktree-keeper.log'

_HANDLER_MARK = '_worktree_keeper_handler'


class ColoredFormatter(logging.Formatter):
    """Color the level name of console records when stderr is a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[1;31m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, datefmt=None, use_color: Optional[bool] = None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = sys.stderr.isatty() if use_color is None else use_color

    def format(self, record):
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return text
        # Only the level name is colored, the message stays readable when copied
        return text.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)


def _drop_own_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(
    verbose: bool = False,
    debug: bool = False,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the engine's logger namespace.

    Calling this again replaces the handlers installed by a previous call;
    handlers added by the host application are left alone.

    Args:
        verbose: Show INFO level records on stderr
        debug: Show DEBUG level records and write a full log file
        log_dir: Directory for the debug log file (defaults to LOG_DIR)

    Returns:
        The namespace logger
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger = logging.getLogger(LOGGER_NAMESPACE)
    _drop_own_handlers(logger)
    logger.setLevel(logging.DEBUG if debug else level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.setFormatter(ColoredFormatter(
            fmt='%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s',
            datefmt='%H:%M:%S'
        ))
    else:
        console_handler.setFormatter(ColoredFormatter(fmt='%(levelname)s %(message)s'))
    setattr(console_handler, _HANDLER_MARK, True)
    logger.addHandler(console_handler)

    if debug:
        target_dir = log_dir or LOG_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target_dir / LOG_FILE_NAME, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        setattr(file_handler, _HANDLER_MARK, True)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the namespaced logger for a module name such as ``__name__``."""
    if name.startswith(PACKAGE_PREFIX):
        name = name[len(PACKAGE_PREFIX):]
    elif name == PACKAGE_PREFIX.rstrip('.'):
        return logging.getLogger(LOGGER_NAMESPACE)

    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
