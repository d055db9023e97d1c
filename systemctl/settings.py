"""
This module contains the configuration settings for the systemctl replacement.
It defines the unit file search paths, the control socket, and the timings used
by the supervision engine. Every value can be overridden through the environment
(or a `.env` file), and the modifiable ones through the JSON overrides file.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=False)


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


#* --- Unit File Paths ---
SYSTEM_UNIT_DIR = pathlib.Path(os.getenv("SYSTEMCTL_SYSTEM_UNIT_DIR", "/usr/lib/systemd/system"))
USER_UNIT_DIR = pathlib.Path(os.getenv("SYSTEMCTL_USER_UNIT_DIR", "/etc/systemd/system"))
ENABLE_DIR = pathlib.Path(os.getenv("SYSTEMCTL_ENABLE_DIR", "/etc/systemd/system/multi-user.target.wants"))
UNIT_SUFFIX = ".service"

#* --- Daemon Paths ---
SOCKET_PATH = pathlib.Path(os.getenv("SYSTEMCTL_SOCKET_PATH", "/etc/systemd/systemctl.sock"))
SOCKET_MODE = 0o777
OVERRIDES_JSON_PATH = pathlib.Path(os.getenv("SYSTEMCTL_OVERRIDES", "/etc/systemd/systemctl.json"))
DAEMON_PROCESS_TITLE = "systemctl - Daemon"

#* --- Service Defaults ---
DEFAULT_WORKING_DIR = os.getenv("SYSTEMCTL_DEFAULT_WORKING_DIR", "/root")
# Units found in the enablement directory that are never started at boot
RESERVED_UNITS = {"e2scrub_reap.service"}

#* --- Protocol Settings ---
BUFFER_SIZE = 1024
ACCEPT_POLL_INTERVAL = 1.0  # seconds between shutdown checks in the accept loop

#* --- Supervisor Settings ---
GRACE_PERIOD = _env_float("SYSTEMCTL_GRACE_PERIOD", 5)      # seconds before SIGKILL
RESTART_DELAY = _env_float("SYSTEMCTL_RESTART_DELAY", 5)    # seconds before each restart attempt
START_ATTEMPTS = int(os.getenv("SYSTEMCTL_START_ATTEMPTS", "5"))
REAPER_INTERVAL = _env_float("SYSTEMCTL_REAPER_INTERVAL", 1)

#* --- CLI ---
VERSION_BANNER = "systemd 226"
USAGE = "Usage: systemctl [enable|disable|start|stop|restart|status|domain] [service]"

#* --- Application variables ---
VERBOSE_LOGGING = os.getenv("SYSTEMCTL_VERBOSE", "False").lower() in ('true', '1', 't')

#* --- MODIFIABLE SETTINGS (Changeable through the overrides file) ---
MODIFIABLE_SETTINGS = {
    "GRACE_PERIOD",
    "RESTART_DELAY",
    "START_ATTEMPTS",
    "REAPER_INTERVAL",
    "DEFAULT_WORKING_DIR",
    "VERBOSE_LOGGING",
}
