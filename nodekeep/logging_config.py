"""
Logging configuration for nodekeep.

Quiet by default on the terminal, with a persistent operations log next to
the config so failed creates (orphan records) can be traced afterwards.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Library loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose output.

    This silences:
    - httpx request lines
    - nodekeep warnings on stderr (they still reach the ops log)
    - Python warnings (deprecation, etc.)

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        logging.getLogger("nodekeep").setLevel(logging.ERROR)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    # Re-enable warnings
    warnings.filterwarnings("default")

    # Configure root logger for debug output
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    for name in ("nodekeep", *_NOISY_LOGGERS):
        logging.getLogger(name).setLevel(logging.DEBUG)


def configure_ops_log(config_dir):
    """Configure a persistent operations log.

    Writes to {config_dir}/nodekeep-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on exit.
    """
    log_dir = Path(config_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = (log_dir / "nodekeep-ops.log").resolve()

    nodekeep_logger = logging.getLogger("nodekeep")
    for existing in nodekeep_logger.handlers:
        if isinstance(existing, RotatingFileHandler) and Path(existing.baseFilename) == log_path:
            return existing

    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    nodekeep_logger.addHandler(handler)
    # Ensure nodekeep logger allows INFO through even in quiet mode
    if nodekeep_logger.level == logging.NOTSET or nodekeep_logger.level > logging.INFO:
        nodekeep_logger.setLevel(logging.INFO)

    return handler
