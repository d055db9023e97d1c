import threading
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .units import ServiceDefinition


@dataclass(eq=False)
class ManagedProcess:
    """
    A launched service process. Entries are replaced, never mutated, on restart;
    identity comparison tells an exit watcher whether its process is still the
    current one.
    """

    service_name: str
    process: subprocess.Popen
    definition: ServiceDefinition
    remaining_attempts: int

    @property
    def pid(self) -> int:
        return self.process.pid


class ProcessRegistry:
    """
    Maps a service name to at most one ManagedProcess.

    The accessors do not lock. Callers wrap whole logical operations in
    `locked()`, which is what serializes start/stop/status/enable/disable
    against each other.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ManagedProcess] = {}
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator["ProcessRegistry"]:
        with self._lock:
            yield self

    def get(self, name: str) -> Optional[ManagedProcess]:
        return self._entries.get(name)

    def set(self, name: str, managed: ManagedProcess) -> None:
        self._entries[name] = managed

    def remove(self, name: str) -> Optional[ManagedProcess]:
        return self._entries.pop(name, None)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def is_current(self, managed: ManagedProcess) -> bool:
        """True if `managed` is still the registered entry for its service."""
        return self._entries.get(managed.service_name) is managed

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
