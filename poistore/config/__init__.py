"""Logging configuration for poistore."""
from poistore.config.logging_setup import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
