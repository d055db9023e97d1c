import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from systemctl.config import effective_settings as config
from . import process_utils, units
from .enablement import EnablementStore
from .errors import NotFoundError
from .reaper import ClaimedChildren
from .registry import ManagedProcess, ProcessRegistry
from .units import RestartPolicy

log = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_EXITED = "exited"


@dataclass(frozen=True)
class RestartDecision:
    restart: bool
    reason: str


def evaluate_restart(policy: RestartPolicy, exit_code: int, is_current: bool, remaining_attempts: int) -> RestartDecision:
    """
    Decides what happens after a managed process exits.

    Only `on-failure` with a clean exit suppresses a restart by policy; every
    other combination, including no policy at all, is retried while the
    attempt budget lasts. A process that has been stopped or replaced in the
    meantime is never restarted.
    """
    if not is_current:
        return RestartDecision(False, "service has been stopped or replaced")
    if policy is RestartPolicy.ON_FAILURE and exit_code == 0:
        return RestartDecision(False, "exited normally, no restart needed")
    if remaining_attempts <= 0:
        return RestartDecision(False, "no restart attempts left")
    return RestartDecision(True, f"{remaining_attempts} restart attempts left")


class ServiceManager:
    """
    Starts, stops and supervises services described by unit files.

    Every control operation runs entirely under the registry lock, so
    operations are totally ordered, across all services.
    """

    def __init__(
        self,
        registry: Optional[ProcessRegistry] = None,
        enablement: Optional[EnablementStore] = None,
        unit_dirs: Optional[Iterable[Path]] = None,
        grace_period: Optional[float] = None,
        restart_delay: Optional[float] = None,
        start_attempts: Optional[int] = None,
        default_working_dir: Optional[str] = None,
    ) -> None:
        self.registry = ProcessRegistry() if registry is None else registry
        self.enablement = EnablementStore() if enablement is None else enablement
        self.unit_dirs = list(unit_dirs) if unit_dirs is not None else [config.USER_UNIT_DIR, config.SYSTEM_UNIT_DIR]
        self.grace_period = config.GRACE_PERIOD if grace_period is None else grace_period
        self.restart_delay = config.RESTART_DELAY if restart_delay is None else restart_delay
        self.start_attempts = config.START_ATTEMPTS if start_attempts is None else start_attempts
        self.default_working_dir = default_working_dir or config.DEFAULT_WORKING_DIR

        self.claims = ClaimedChildren()
        # Set on daemon shutdown; pending restarts are abandoned, children are left alone.
        self.shutdown_signal_received = threading.Event()

    def _find(self, name: str) -> Path:
        path = units.resolve(name, self.unit_dirs)
        if path is None:
            log.warning(f"Service file not found: {name}")
            raise NotFoundError("no service found")
        return path

    #* --- Control operations ---
    def start(self, name: str, remaining_attempts: Optional[int] = None) -> ManagedProcess:
        """
        Launches a service, replacing its current process if there is one.

        :param name: Service name without suffix.
        :param remaining_attempts: Restart budget for this launch.
        :raises NotFoundError: Unknown service or missing ExecStart.
        :raises ConfigInvalidError: Unusable unit file.
        :raises LaunchFailureError: The executable could not be spawned.
        """
        if remaining_attempts is None:
            remaining_attempts = self.start_attempts

        with self.registry.locked():
            log.info(f"Starting service: {name} (attempts: {remaining_attempts})")
            definition = units.load(name, self._find(name), self.default_working_dir)

            existing = self.registry.remove(name)
            if existing is not None and existing.process.poll() is None:
                log.info(f"Terminating existing service process: {name} (PID: {existing.pid})")
                process_utils.terminate_process(existing.process, name, self.grace_period)

            with self.claims.lock:
                process = process_utils.launch_process(definition)
                self.claims.add(process.pid)

            managed = ManagedProcess(name, process, definition, remaining_attempts)
            self.registry.set(name, managed)
            threading.Thread(
                target=self._watch, args=(managed,), daemon=True, name=f"ExitWatcher-{name}"
            ).start()
            log.info(f"Service started successfully: {name} (PID: {process.pid}) {definition.argv}")
            return managed

    def restart(self, name: str) -> ManagedProcess:
        """Same as start: a running process is always replaced."""
        return self.start(name)

    def stop(self, name: str) -> None:
        """
        Stops a service: SIGTERM, then SIGKILL after the grace period.
        The registry entry is removed whichever way the process ended.

        :raises NotFoundError: If the service has no tracked process.
        """
        with self.registry.locked():
            managed = self.registry.get(name)
            if managed is None:
                raise NotFoundError("service is not run")
            try:
                exit_code = process_utils.terminate_process(managed.process, name, self.grace_period)
                log.info(f"Service stopped: {name} (exit code: {exit_code})")
            finally:
                self.registry.remove(name)

    def status(self, name: str) -> str:
        """
        Reports "running" or "exited".

        Registry presence alone is not trusted: the tracked PID must also answer
        a liveness probe. A process started outside this daemon is invisible.

        :raises NotFoundError: If no unit file exists for the service.
        """
        with self.registry.locked():
            self._find(name)
            managed = self.registry.get(name)
            if managed is None or managed.process.returncode is not None:
                return STATUS_EXITED
            if not process_utils.is_process_alive(managed.pid):
                return STATUS_EXITED
            return STATUS_RUNNING

    def enable(self, name: str) -> None:
        """
        Marks a service to start at daemon boot.

        :raises NotFoundError: If no unit file exists for the service.
        :raises SupervisorError: If the service is already enabled.
        """
        with self.registry.locked():
            self.enablement.enable(name, self._find(name))

    def disable(self, name: str) -> None:
        """
        :raises NotFoundError: If the service is not enabled.
        """
        with self.registry.locked():
            self.enablement.disable(name)

    def is_claimed(self, pid: int) -> bool:
        """True while an exit watcher is waiting on `pid`."""
        return pid in self.claims

    #* --- Exit handling ---
    def _watch(self, managed: ManagedProcess) -> None:
        """Waits for a managed process to exit, then applies its restart policy."""
        name = managed.service_name
        try:
            exit_code = managed.process.wait()
        finally:
            self.claims.discard(managed.pid)
        log.info(f"Service exited: {name} (exit code: {exit_code})")

        with self.registry.locked():
            decision = evaluate_restart(
                managed.definition.restart_policy, exit_code,
                self.registry.is_current(managed), managed.remaining_attempts,
            )
        if not decision.restart:
            log.info(f"Not restarting {name}: {decision.reason}")
            return

        log.info(f"Restarting {name} in {self.restart_delay}s ({decision.reason})")
        if self.shutdown_signal_received.wait(self.restart_delay):
            log.info(f"Daemon is shutting down, restart of {name} abandoned")
            return

        with self.registry.locked():
            if self.shutdown_signal_received.is_set():
                return
            if not self.registry.is_current(managed):
                log.info(f"Restart of {name} cancelled: service has been stopped or replaced")
                return
            remaining = managed.remaining_attempts - 1
            log.info(f"Attempting to restart service: {name} (remaining attempts: {remaining})")
            try:
                self.start(name, remaining)
            except Exception as e:
                log.error(f"Failed to restart service {name}: {e}")
