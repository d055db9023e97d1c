"""
A minimal systemctl replacement for containers without an init system.

Running `systemctl domain` starts the supervisor daemon; every other command
is a thin client that forwards one request to it over a Unix socket.
"""

__version__ = "1.0.0"
