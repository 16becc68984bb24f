"""
Logging Configuration

Node loggers live under the `langgraph.` namespace so one level setting
covers the whole pipeline. Scripts call setup_application_logging() once;
LOG_FILE in the environment adds a file handler next to stdout.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _level(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def get_node_logger(node_name: str, level: str = "INFO") -> logging.Logger:
    """
    Get the stdout logger for a pipeline node (`langgraph.<node_name>`).

    Repeated calls return the same logger without stacking handlers.

    Example:
        >>> logger = get_node_logger('data_fetch')
        >>> logger.info("Searching evidence for SOL")
    """
    logger = logging.getLogger(f"langgraph.{node_name}")
    if logger.handlers:
        return logger

    logger.setLevel(_level(level))
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def setup_application_logging(level: str = "INFO", log_file: Optional[str] = None) -> List[logging.Handler]:
    """
    Configure root logging for scripts. Call once at startup.

    Args:
        level: Global logging level
        log_file: Optional path; everything down to DEBUG is also written there

    Returns:
        The handlers installed on the root logger

    Example:
        >>> from signal_agent.utils.config import LOG_FILE, LOG_LEVEL
        >>> setup_application_logging(LOG_LEVEL, LOG_FILE)
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_level(level))
    console_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [console_handler]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG if log_file else _level(level), handlers=handlers, force=True)

    # Suppress overly verbose third-party loggers
    for noisy in ('aiohttp', 'asyncio', 'httpx', 'telegram'):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger('langgraph').setLevel(_level(level))

    logging.getLogger(__name__).info(
        f"Application logging configured at {level} level" + (f", file: {log_file}" if log_file else "")
    )
    return handlers
