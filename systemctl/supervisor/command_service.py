import os
import logging
import socketserver
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from systemctl.config import effective_settings as config
from .errors import ProtocolMalformedError, SupervisorError

if TYPE_CHECKING:
    from .supervisor import ServiceManager

log = logging.getLogger(__name__)

REPLY_SUCCESS = "success"


def parse_message(message: str) -> Tuple[str, str]:
    """
    Splits an `operation:service` message on its first colon and strips the
    unit suffix from the service name.

    :raises ProtocolMalformedError: If there is no colon.
    """
    operation, sep, service = message.strip().partition(":")
    if not sep:
        raise ProtocolMalformedError(f"malformed message: {message!r}")
    service = service.strip()
    if service.endswith(config.UNIT_SUFFIX):
        service = service[:-len(config.UNIT_SUFFIX)]
    return operation.strip(), service


def dispatch(manager: "ServiceManager", operation: str, service: str, on_reboot: Callable[[], None]) -> Optional[str]:
    """
    Runs one control operation.

    :return: The text to send back, or None when the connection should be
             closed without a reply (unknown operation, reboot).
    """
    if operation == "reboot":
        log.info("reboot")
        on_reboot()
        return None

    handlers = {
        "enable": manager.enable,
        "disable": manager.disable,
        "start": manager.start,
        "restart": manager.restart,
        "stop": manager.stop,
        "status": manager.status,
    }
    handler = handlers.get(operation)
    if handler is None:
        log.debug(f"Ignoring unknown operation '{operation}' for '{service}'")
        return None

    log.info(f"{operation}: {service}")
    try:
        result = handler(service)
    except SupervisorError as e:
        log.warning(f"{operation} {service} failed: {e}")
        return str(e)
    except Exception as e:
        log.error(f"Unexpected error handling {operation} {service}: {e}", exc_info=True)
        return str(e)
    return result if operation == "status" else REPLY_SUCCESS


class CommandRequestHandler(socketserver.BaseRequestHandler):
    """
    Handles one client connection: a single request, a single reply.
    Each connection runs in its own thread.
    """

    server: "CommandServer"

    def handle(self) -> None:
        data = self.request.recv(config.BUFFER_SIZE)
        if not data:
            return
        message = data.decode("utf-8", errors="replace")
        try:
            operation, service = parse_message(message)
        except ProtocolMalformedError as e:
            log.debug(f"Dropping connection: {e}")
            return

        reply = dispatch(self.server.manager, operation, service, self.server.on_reboot)
        if reply is not None:
            self.request.sendall(reply.encode("utf-8"))


class CommandServer(socketserver.ThreadingUnixStreamServer):
    """The daemon's control socket."""

    daemon_threads = True

    def __init__(self, socket_path: Path, manager: "ServiceManager", on_reboot: Callable[[], None]) -> None:
        self.manager = manager
        self.on_reboot = on_reboot
        self.socket_path = Path(socket_path)
        super().__init__(str(self.socket_path), CommandRequestHandler)

    def handle_error(self, request, client_address) -> None:
        log.error("Error while handling a control connection", exc_info=True)


def open_command_server(socket_path: Path, manager: "ServiceManager", on_reboot: Callable[[], None]) -> CommandServer:
    """
    Binds the control socket, replacing a stale socket file, and opens it to
    every local user.

    :raises OSError: If the socket cannot be bound.
    """
    socket_path = Path(socket_path)
    if socket_path.exists() or socket_path.is_symlink():
        socket_path.unlink()
    socket_path.parent.mkdir(parents=True, exist_ok=True)

    server = CommandServer(socket_path, manager, on_reboot)
    server.timeout = config.ACCEPT_POLL_INTERVAL
    try:
        os.chmod(socket_path, config.SOCKET_MODE)
    except OSError as e:
        log.error(f"Failed to set permissions on {socket_path}: {e}")
    log.info(f"Control socket listening on {socket_path}")
    return server
