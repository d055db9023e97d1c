import os
import psutil
import logging
import threading
from typing import List, Set

log = logging.getLogger(__name__)


class ClaimedChildren:
    """
    PIDs that an exit watcher is waiting on. The reaper must leave these alone,
    otherwise the watcher would lose the exit code.

    `lock` is held while a child is spawned and claimed, and while the reaper
    inspects children, so a fresh child is never reaped before it is claimed.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._pids: Set[int] = set()

    def add(self, pid: int) -> None:
        with self.lock:
            self._pids.add(pid)

    def discard(self, pid: int) -> None:
        with self.lock:
            self._pids.discard(pid)

    def __contains__(self, pid: int) -> bool:
        with self.lock:
            return pid in self._pids


def reap_unclaimed_children(claims: ClaimedChildren) -> List[int]:
    """
    Collects every terminated child of this process that nobody else waits on.

    :param claims: PIDs owned by exit watchers.
    :return: The PIDs that were reaped.
    """
    reaped: List[int] = []
    with claims.lock:
        try:
            children = psutil.Process().children()
        except psutil.Error as e:
            log.debug(f"Could not list child processes: {e}")
            return reaped

        for child in children:
            if child.pid in claims:
                continue
            try:
                if child.status() != psutil.STATUS_ZOMBIE:
                    continue
            except psutil.NoSuchProcess:
                continue
            try:
                pid, _ = os.waitpid(child.pid, os.WNOHANG)
            except ChildProcessError:
                # Someone else got there first.
                continue
            if pid:
                log.info(f"Reaped zombie process PID: {pid}")
                reaped.append(pid)
    return reaped


def _reaper_loop(claims: ClaimedChildren, shutdown_event: threading.Event, interval: float) -> None:
    while not shutdown_event.is_set():
        try:
            reap_unclaimed_children(claims)
        except Exception as e:
            log.error(f"Error while reaping child processes: {e}", exc_info=True)
        shutdown_event.wait(interval)
    log.info("Zombie reaper thread has stopped.")


def start_zombie_reaper(claims: ClaimedChildren, shutdown_event: threading.Event, interval: float) -> threading.Thread:
    """
    Starts the background thread that reaps orphaned children.

    :param claims: PIDs owned by exit watchers.
    :param shutdown_event: Stops the loop once set.
    :param interval: Seconds between passes.
    """
    reaper_thread = threading.Thread(
        target=_reaper_loop,
        args=(claims, shutdown_event, interval),
        daemon=True,
        name="ZombieReaperThread",
    )
    reaper_thread.start()
    return reaper_thread
