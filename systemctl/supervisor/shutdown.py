import signal
import logging
from pathlib import Path
from typing import Callable, Optional

from .command_service import CommandServer

log = logging.getLogger(__name__)


def close_listener(server: Optional[CommandServer]) -> None:
    """Closes the control socket and removes its file."""
    if server is None:
        return
    server.server_close()
    cleanup_socket_file(server.socket_path)


def cleanup_socket_file(socket_path: Path) -> None:
    try:
        Path(socket_path).unlink()
        log.debug(f"Removed control socket {socket_path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        log.error(f"Failed to remove control socket {socket_path}: {e}")


def install_signal_handlers(on_signal: Callable[[int], None]) -> bool:
    """
    Routes SIGINT and SIGTERM to `on_signal`.

    :return: False when not called from the main thread (e.g. under a test runner).
    """
    def _handler(signum, frame):
        log.info(f"Received {signal.Signals(signum).name}, shutting down.")
        on_signal(signum)

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        return True
    except ValueError as e:
        log.warning(f"Could not set up signal handlers: {e}")
        return False
