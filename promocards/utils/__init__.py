"""Utility modules for promocards."""

from .logging_config import get_logger, setup_logging
from .retry import remote_retry

__all__ = ["get_logger", "setup_logging", "remote_retry"]
