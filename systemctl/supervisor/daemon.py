import os
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from systemctl.config import effective_settings as config
from . import shutdown, startup
from .command_service import CommandServer, open_command_server
from .reaper import start_zombie_reaper
from .supervisor import ServiceManager

log = logging.getLogger(__name__)


class Daemon:
    """
    The long-running half of the program: owns the ServiceManager, the
    reaper and the control socket.

    Shutting the daemon down does not stop the services it launched; they keep
    running, orphaned, until the container itself goes away.
    """

    def __init__(
        self,
        manager: Optional[ServiceManager] = None,
        socket_path: Optional[Path] = None,
        on_reboot: Optional[Callable[[], None]] = None,
        reaper_interval: Optional[float] = None,
    ) -> None:
        self.manager = manager or ServiceManager()
        self.socket_path = Path(socket_path or config.SOCKET_PATH)
        self.on_reboot = on_reboot or self._exit_immediately
        self.reaper_interval = config.REAPER_INTERVAL if reaper_interval is None else reaper_interval

        self.shutdown_signal_received = self.manager.shutdown_signal_received
        self.server: Optional[CommandServer] = None
        self._closed = threading.Event()

    def open(self) -> CommandServer:
        """Binds the control socket. Failure here aborts daemon startup."""
        self.server = open_command_server(self.socket_path, self.manager, self.on_reboot)
        return self.server

    def serve(self) -> None:
        """Accepts control connections until shutdown is requested."""
        while not self.shutdown_signal_received.is_set():
            try:
                self.server.handle_request()
            except (OSError, ValueError):
                # The listener was closed underneath us during shutdown.
                if self.shutdown_signal_received.is_set():
                    break
                raise

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        self.shutdown_signal_received.set()

    def close(self) -> None:
        """Closes the listener and removes the socket file. Services are left running."""
        self.shutdown_signal_received.set()
        if self._closed.is_set():
            return
        self._closed.set()
        shutdown.close_listener(self.server)
        log.info("Daemon stopped. Managed services were left running.")

    def _exit_immediately(self) -> None:
        shutdown.cleanup_socket_file(self.socket_path)
        logging.shutdown()
        os._exit(0)

    def run(self) -> bool:
        """
        Boots the daemon and serves until SIGINT/SIGTERM.

        :return: False if the control socket could not be opened.
        """
        startup.set_daemon_title()
        log.info("Starting daemon process")
        start_zombie_reaper(self.manager.claims, self.shutdown_signal_received, self.reaper_interval)
        startup.start_enabled_services(self.manager)

        try:
            self.open()
        except OSError as e:
            log.critical(f"Listening on {self.socket_path} failed: {e}", exc_info=True)
            self.shutdown_signal_received.set()
            return False

        shutdown.install_signal_handlers(self.request_shutdown)
        try:
            self.serve()
        finally:
            self.close()
        return True
