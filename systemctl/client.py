import socket
import logging
from pathlib import Path
from typing import Optional

from systemctl.config import effective_settings as config

log = logging.getLogger(__name__)


def send(service: str, operation: str, socket_path: Optional[Path] = None, timeout: Optional[float] = None) -> str:
    """
    Sends one `operation:service` command to the daemon and returns its reply.

    Connection problems are returned as text rather than raised, so the caller
    can print whatever comes back.

    :param service: The service the operation applies to.
    :param operation: enable, disable, start, restart, stop, status or reboot.
    :param socket_path: The daemon's control socket.
    :param timeout: Seconds to wait on the socket; None blocks, since a stop
                    may legitimately take the whole grace period.
    :return: The daemon's reply or an error description.
    """
    socket_path = Path(socket_path or config.SOCKET_PATH)
    message = f"{operation}:{service}"
    log.debug(f"Sending '{message}' to {socket_path}")

    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as conn:
        conn.settimeout(timeout)
        try:
            conn.connect(str(socket_path))
        except OSError as e:
            return f"Error connecting to daemon: {e}"
        try:
            conn.sendall(message.encode("utf-8"))
        except OSError as e:
            return f"Error sending message: {e}"
        try:
            response = conn.recv(config.BUFFER_SIZE)
        except OSError as e:
            return f"Error reading response: {e}"

    if not response:
        return "Error reading response: connection closed without a reply"
    return response.decode("utf-8", errors="replace")
