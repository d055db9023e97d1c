import signal
import psutil
import logging
import subprocess
from typing import Optional

from .errors import LaunchFailureError, SignalFailureError
from .units import ServiceDefinition

log = logging.getLogger(__name__)


#* --- Process Status & Monitoring ---
def get_proc_status_string(pid: int) -> str:
    """Gets a string representation of a process status."""
    try:
        if psutil.Process(pid).status() == psutil.STATUS_ZOMBIE:
            return "zombie"
        return "running"
    except psutil.NoSuchProcess:
        return "stopped"
    except psutil.Error:
        return "unknown"


def is_process_alive(pid: int) -> bool:
    """
    Liveness probe used by status queries. A zombie is dead: it only waits to
    be reaped. When psutil cannot tell, fall back to a plain existence check.
    """
    status = get_proc_status_string(pid)
    if status == "unknown":
        return psutil.pid_exists(pid)
    return status == "running"


#* --- Process Creation ---
def launch_process(definition: ServiceDefinition) -> subprocess.Popen:
    """
    Spawns a service in its own session (and so its own process group).

    The child shares the daemon's stdout and stderr; nothing in the daemon has
    to stay alive for the service to keep writing output.

    :param definition: The definition to launch.
    :raises LaunchFailureError: If the executable or working directory is unusable.
    """
    try:
        return subprocess.Popen(
            definition.argv,
            stdin=subprocess.DEVNULL,
            cwd=definition.working_directory,
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        raise LaunchFailureError(str(e)) from e


#* --- Process Termination ---
def send_signal(process: subprocess.Popen, service_name: str, sig: int) -> bool:
    """
    Delivers a signal, logging instead of raising when it cannot be delivered.

    :return: True if the signal was sent (or the process had already exited).
    """
    try:
        process.send_signal(sig)
        return True
    except OSError as e:
        failure = SignalFailureError(f"failed to send {signal.Signals(sig).name} to {service_name}: {e}")
        log.warning(str(failure))
        return False


def terminate_process(process: subprocess.Popen, service_name: str, grace_period: float) -> Optional[int]:
    """
    Stops a process: SIGTERM, then SIGKILL if it has not exited within the
    grace period.

    :return: The exit code, or None if it could not be observed.
    """
    if process.poll() is not None:
        log.debug(f"Process for '{service_name}' (PID {process.pid}) already exited.")
        return process.returncode

    log.debug(f"Sending SIGTERM to '{service_name}' (PID {process.pid})")
    send_signal(process, service_name, signal.SIGTERM)
    try:
        return process.wait(timeout=grace_period)
    except subprocess.TimeoutExpired:
        pass

    log.warning(f"Process '{service_name}' (PID {process.pid}) did not exit normally, forcing termination...")
    send_signal(process, service_name, signal.SIGKILL)
    try:
        return process.wait(timeout=grace_period)
    except subprocess.TimeoutExpired:
        log.error(f"Process '{service_name}' (PID {process.pid}) survived SIGKILL for {grace_period}s.")
        return None
