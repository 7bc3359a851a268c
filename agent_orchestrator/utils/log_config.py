import logging
from typing import Optional

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


def setup_logging(level: str = "INFO", log_file_path: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: log level name
        log_file_path: also write to this file when given

    Returns:
        The "agent_orchestrator" logger
    """
    logger = logging.getLogger("agent_orchestrator")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)

    if log_file_path:
        file_handler = logging.FileHandler(log_file_path)
        file_handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(file_handler)

    return logger
