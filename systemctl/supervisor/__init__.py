"""
The Supervisor package.
Manages the lifecycle of the services described by unit files.

This package contains the central ServiceManager class, the Daemon that serves
control commands over a local socket, and their helper modules, which together
handle loading unit files, starting, stopping, restarting and reaping processes.
"""
from .daemon import Daemon
from .errors import SupervisorError, NotFoundError
from .supervisor import ServiceManager

__all__ = ['Daemon', 'ServiceManager', 'SupervisorError', 'NotFoundError']
