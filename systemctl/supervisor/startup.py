import logging
from typing import TYPE_CHECKING, List

import setproctitle

from systemctl.config import effective_settings as config
from .errors import SupervisorError

if TYPE_CHECKING:
    from .supervisor import ServiceManager

log = logging.getLogger(__name__)


def set_daemon_title() -> None:
    """Names the daemon process so it is recognizable in `ps` output."""
    setproctitle.setproctitle(config.DAEMON_PROCESS_TITLE)


def start_enabled_services(manager: "ServiceManager") -> List[str]:
    """
    Starts every enabled service. A service that fails to start is logged and
    skipped; it never prevents the others or the daemon from starting.

    :param manager: The ServiceManager instance.
    :return: The names of the services that were started.
    """
    started = []
    for name in manager.enablement.enabled_services():
        try:
            manager.start(name, manager.start_attempts)
            started.append(name)
        except SupervisorError as e:
            log.error(f"Failed to auto-start service {name}: {e}")
    log.info(f"Auto-started {len(started)} enabled service(s).")
    return started
