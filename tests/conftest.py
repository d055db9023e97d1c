"""Shared fixtures for supervisor tests."""

import logging
import os
import shutil
import signal
import tempfile
import textwrap
import time
from pathlib import Path

import pytest

from systemctl.supervisor.enablement import EnablementStore
from systemctl.supervisor.supervisor import ServiceManager


def wait_until(predicate, timeout=10.0, interval=0.05):
    """Polls `predicate` until it is truthy; returns its last value."""
    deadline = time.monotonic() + timeout
    while True:
        result = predicate()
        if result or time.monotonic() >= deadline:
            return result
        time.sleep(interval)


class UnitDirs:
    """Temporary user/system unit directories plus an enablement directory."""

    def __init__(self, root: Path):
        self.root = root
        self.user = root / "etc-systemd-system"
        self.system = root / "usr-lib-systemd-system"
        self.enable = root / "wants"
        self.work = root / "work"
        for directory in (self.user, self.system, self.work):
            directory.mkdir()

    def write_unit(self, name, exec_start=None, restart=None, working_directory=None, system=False, raw=None):
        """Writes `<name>.service` and returns its path."""
        directory = self.system if system else self.user
        path = directory / f"{name}.service"
        if raw is None:
            lines = ["[Unit]", f"Description={name}", "", "[Service]"]
            if exec_start is not None:
                lines.append(f"ExecStart={exec_start}")
            if restart is not None:
                lines.append(f"Restart={restart}")
            if working_directory is not None:
                lines.append(f"WorkingDirectory={working_directory}")
            lines += ["", "[Install]", "WantedBy=multi-user.target", ""]
            raw = "\n".join(lines)
        path.write_text(raw)
        return path

    def write_script(self, name, body):
        """Writes an executable /bin/sh script and returns its path."""
        path = self.root / name
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        path.chmod(0o755)
        return path


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def short_tmp():
    # Unix socket paths are limited to ~108 bytes, pytest's tmp_path can be longer.
    path = Path(tempfile.mkdtemp(prefix="ctl"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def units(short_tmp):
    return UnitDirs(short_tmp)


@pytest.fixture
def manager(units):
    """A ServiceManager on temporary directories with fast timings."""
    mgr = ServiceManager(
        enablement=EnablementStore(units.enable),
        unit_dirs=[units.user, units.system],
        grace_period=2.0,
        restart_delay=0.1,
        start_attempts=2,
        default_working_dir=str(units.work),
    )
    yield mgr
    mgr.shutdown_signal_received.set()
    with mgr.registry.locked():
        for name in mgr.registry.names():
            managed = mgr.registry.remove(name)
            if managed.process.poll() is None:
                managed.process.kill()
                managed.process.wait(timeout=5)


def kill_pid(pid):
    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
