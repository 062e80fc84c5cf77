"""
logging.py — Application-Wide Logging Configuration

Purpose:
- Configure one log format for the API, the entity stores and the services.
- Store failures, permission rejections and session changes are logged
  where they are caught; this module only sets up the plumbing.

Format: timestamp | level | module | message
"""

import logging

# -----------------------------------------------------------------------------
# Log Format
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty third-party loggers that drown out request-level logs at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


# -----------------------------------------------------------------------------
# Root Logger Initialization
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging settings.

    Should be called ONCE, in `main.py` at app startup.
    Unknown level names fall back to INFO.
    """
    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    logging.getLogger(__name__).info("Logging initialized with level %s", logging.getLevelName(resolved))


# -----------------------------------------------------------------------------
# Logger Access Helper
# -----------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """
    Return a logger instance to be used in any module.

    Usage:
        from app.core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
