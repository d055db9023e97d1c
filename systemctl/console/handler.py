import logging

from systemctl import client
from systemctl.config import effective_settings as config
from systemctl.log import setup_logging
from systemctl.supervisor import Daemon

log = logging.getLogger(__name__)

# Log line written before each service command is sent.
_ACTION_MESSAGES = {
    "enable": "Enabling service",
    "disable": "Disabling service",
    "start": "Starting service",
    "stop": "Stopping service",
    "restart": "Restarting service",
    "status": "Checking service status",
}


def print_usage() -> None:
    print(config.USAGE)


def print_version() -> None:
    print(config.VERSION_BANNER)


def send_service_command(command: str, service: str) -> None:
    """Forwards one service command to the daemon and prints the reply."""
    log.info(f"{_ACTION_MESSAGES.get(command, command)}: {service}")
    print(client.send(service, command))


def send_reboot() -> None:
    print(client.send("reboot", "reboot"))


def run_daemon(verbose: bool = False) -> bool:
    """
    Runs the supervisor daemon in this process until it is told to stop.

    :param verbose: If True, sets console logging to DEBUG level.
    :return: False if the daemon could not start.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    return Daemon().run()
