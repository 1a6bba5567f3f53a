import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: Optional[str] = None, component_name: str = "magstream") -> logging.Logger:
    """
    Set up logging for the service.

    Every module logs through ``logging.getLogger(__name__)``, so configuring the
    top-level ``magstream`` logger covers the whole package.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to INFO.
        component_name: Logger to configure.

    Returns:
        Configured logger instance
    """
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(handler)
    logger.propagate = False

    return logger
