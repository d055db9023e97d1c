"""
This module initializes the console package, exposing command execution and
the usage/version output of the command-line interface.
"""

from .process import execute_command, SERVICE_COMMANDS
from .handler import print_usage, print_version

__all__ = ["execute_command", "SERVICE_COMMANDS", "print_usage", "print_version"]
