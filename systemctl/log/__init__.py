"""
Logging module for the daemon and the client.
This module provides the console logging setup shared by both.
"""

from .setup import setup_logging, LOG_FORMAT

__all__ = ["setup_logging", "LOG_FORMAT"]
