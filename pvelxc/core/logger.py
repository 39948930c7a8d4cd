"""Unified logging for pvelxc with console and file output."""
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOG_DIR = Path("/var/log/pvelxc")
LOG_FILE = LOG_DIR / "pvelxc.log"

_file_logging_configured = False


def setup_file_logging(log_file: str = None, verbose: bool = False):
    """Mirror reconciler activity into a log file.

    Args:
        log_file: Path to log file (defaults to /var/log/pvelxc/pvelxc.log)
        verbose: Enable debug-level logging

    Note:
        Falls back to /tmp if /var/log/pvelxc is not writable.
    """
    global _file_logging_configured

    if _file_logging_configured:
        return

    target_log_file = Path(log_file) if log_file else LOG_FILE

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        target_log_file = Path("/tmp/pvelxc.log")
        target_log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger("pvelxc")
    file_handler = logging.FileHandler(target_log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    _file_logging_configured = True
    root_logger.info(f"pvelxc logging initialized: {target_log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a Rich console handler attached.

    Args:
        name: Logger name (typically __name__)
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def set_verbose(verbose: bool):
    """Switch every pvelxc logger between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger("pvelxc").setLevel(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("pvelxc") and isinstance(logger, logging.Logger):
            logger.setLevel(level)
