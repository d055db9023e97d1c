import logging
from typing import List

from systemctl.console.handler import print_usage, print_version, run_daemon, send_service_command

log = logging.getLogger(__name__)

SERVICE_COMMANDS = ("enable", "disable", "start", "stop", "restart", "status")


def execute_command(command: str, args: List[str], verbose: bool = False) -> int:
    """
    Executes a single command from the command line.

    :param command: The main command string (e.g., 'start', 'domain').
    :param args: The remaining arguments.
    :param verbose: Enables debug logging for the daemon.
    :return: The process exit status.
    """
    log.debug(f"Executing command: {command}, args: {args}")

    if command in SERVICE_COMMANDS:
        if not args:
            print("Error: service name required")
            return 1
        send_service_command(command, args[0])
        return 0

    if command == "domain":
        return 0 if run_daemon(verbose) else 1

    if command == "--version":
        print_version()
        return 0

    print(f"Unknown command: {command}")
    print_usage()
    return 1
