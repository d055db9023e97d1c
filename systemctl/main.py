import os
import sys
import logging
from typing import List, Optional

from systemctl.config import effective_settings as config
from systemctl.console import execute_command, print_usage
from systemctl.console.handler import send_reboot
from systemctl.log import setup_logging


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the command-line application."""
    argv = list(sys.argv if argv is None else argv)

    verbose = config.VERBOSE_LOGGING
    if "--verbose" in argv[1:]:
        verbose = True
        argv.remove("--verbose")

    # Client invocations only report problems; the daemon reconfigures logging itself.
    setup_logging(logging.DEBUG if verbose else logging.WARNING, stream=sys.stderr)

    # Invoked through a `reboot` alias (symlink to this program).
    if "reboot" in os.path.basename(argv[0]):
        send_reboot()
        return 0

    if len(argv) < 2:
        print_usage()
        return 1

    return execute_command(argv[1], argv[2:], verbose)


if __name__ == "__main__":
    sys.exit(main())
