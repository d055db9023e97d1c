"""Tests for the control protocol and the daemon's socket loop."""

import os
import signal
import socket
import stat
import subprocess
import sys
import threading
import time
from pathlib import Path

import psutil
import pytest

from conftest import kill_pid, wait_until
from systemctl import client
from systemctl.supervisor.command_service import dispatch, parse_message
from systemctl.supervisor.daemon import Daemon
from systemctl.supervisor.errors import NotFoundError, ProtocolMalformedError

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class FakeManager:
    """Records calls; `fail` makes every operation raise NotFoundError."""

    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def _record(self, operation, name):
        self.calls.append((operation, name))
        if self.fail:
            raise NotFoundError("no service found")

    def enable(self, name):
        self._record("enable", name)

    def disable(self, name):
        self._record("disable", name)

    def start(self, name):
        self._record("start", name)

    def restart(self, name):
        self._record("restart", name)

    def stop(self, name):
        self._record("stop", name)

    def status(self, name):
        self._record("status", name)
        return "running"


@pytest.mark.unit
class TestParseMessage:
    """Test parse_message."""

    def test_operation_and_service(self):
        assert parse_message("start:nginx") == ("start", "nginx")

    def test_strips_unit_suffix(self):
        assert parse_message("stop:nginx.service") == ("stop", "nginx")

    def test_splits_on_first_colon(self):
        assert parse_message("status:a:b") == ("status", "a:b")

    def test_trailing_newline(self):
        assert parse_message("status:nginx\n") == ("status", "nginx")

    def test_missing_delimiter(self):
        with pytest.raises(ProtocolMalformedError):
            parse_message("garbage")


@pytest.mark.unit
class TestDispatch:
    """Test dispatch replies."""

    @pytest.mark.parametrize("operation", ["enable", "disable", "start", "restart", "stop"])
    def test_success(self, operation):
        manager = FakeManager()

        assert dispatch(manager, operation, "web", on_reboot=None) == "success"
        assert manager.calls == [(operation, "web")]

    def test_status_returns_raw_state(self):
        assert dispatch(FakeManager(), "status", "web", on_reboot=None) == "running"

    def test_error_message_is_the_reply(self):
        assert dispatch(FakeManager(fail=True), "start", "web", on_reboot=None) == "no service found"

    def test_unexpected_error_is_reported(self):
        manager = FakeManager()
        manager.stop = lambda name: 1 / 0

        assert "division by zero" in dispatch(manager, "stop", "web", on_reboot=None)

    def test_unknown_operation_is_ignored(self):
        manager = FakeManager()

        assert dispatch(manager, "frobnicate", "web", on_reboot=None) is None
        assert manager.calls == []

    def test_reboot_calls_back(self):
        rebooted = []

        assert dispatch(FakeManager(), "reboot", "reboot", on_reboot=lambda: rebooted.append(True)) is None
        assert rebooted == [True]


@pytest.fixture
def daemon(manager, short_tmp):
    """A Daemon serving on a temporary socket in a background thread."""
    rebooted = threading.Event()
    d = Daemon(manager=manager, socket_path=short_tmp / "ctl.sock", on_reboot=rebooted.set)
    d.rebooted = rebooted
    d.open()
    d.server.timeout = 0.05
    thread = threading.Thread(target=d.serve, daemon=True)
    thread.start()
    yield d
    d.close()
    thread.join(timeout=5)


def _raw_request(path, payload):
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as conn:
        conn.settimeout(5)
        conn.connect(str(path))
        conn.sendall(payload)
        return conn.recv(1024)


@pytest.mark.integration
class TestDaemonSocket:
    """Test full round trips through the control socket."""

    def test_socket_is_world_accessible(self, daemon):
        mode = stat.S_IMODE(daemon.socket_path.stat().st_mode)

        assert mode & 0o666 == 0o666

    def test_start_status_stop(self, daemon, units):
        units.write_unit("sleeper", exec_start="/bin/sleep 100")
        path = daemon.socket_path

        assert client.send("sleeper", "status", path) == "exited"
        assert client.send("sleeper.service", "start", path) == "success"
        assert client.send("sleeper", "status", path) == "running"
        assert client.send("sleeper", "stop", path) == "success"
        assert client.send("sleeper", "status", path) == "exited"

    def test_error_text_is_returned(self, daemon):
        path = daemon.socket_path

        assert client.send("ghost", "status", path) == "no service found"
        assert client.send("ghost", "stop", path) == "service is not run"

    def test_enable_disable_round_trip(self, daemon, units):
        units.write_unit("web", exec_start="/bin/sleep 100")
        path = daemon.socket_path

        assert client.send("web", "enable", path) == "success"
        assert (units.enable / "web.service").is_symlink()
        assert client.send("web", "enable", path).endswith("File exists")
        assert client.send("web", "disable", path) == "success"
        assert client.send("web", "disable", path) == "service web is not enabled"

    def test_malformed_message_gets_no_reply(self, daemon, units):
        units.write_unit("web", exec_start="/bin/sleep 100")

        assert _raw_request(daemon.socket_path, b"garbage") == b""
        # Other clients are unaffected.
        assert client.send("web", "status", daemon.socket_path) == "exited"

    def test_unknown_operation_gets_no_reply(self, daemon):
        assert _raw_request(daemon.socket_path, b"frobnicate:web") == b""

    def test_reboot(self, daemon):
        reply = client.send("reboot", "reboot", daemon.socket_path)

        assert daemon.rebooted.wait(5)
        assert reply.startswith("Error reading response")

    def test_concurrent_clients(self, daemon, units):
        for i in range(5):
            units.write_unit(f"svc{i}", exec_start="/bin/sleep 100")
        replies = {}

        def _start(i):
            replies[i] = client.send(f"svc{i}", "start", daemon.socket_path, timeout=30)

        threads = [threading.Thread(target=_start, args=(i,)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert replies == {i: "success" for i in range(5)}
        assert daemon.manager.registry.names() == [f"svc{i}" for i in range(5)]


@pytest.mark.integration
class TestDaemonShutdown:
    """Test what the daemon leaves behind when it stops."""

    def test_close_removes_socket_and_keeps_children(self, daemon, units):
        units.write_unit("sleeper", exec_start="/bin/sleep 100")
        client.send("sleeper", "start", daemon.socket_path)
        pid = daemon.manager.registry.get("sleeper").pid

        daemon.close()

        try:
            assert not daemon.socket_path.exists()
            assert psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        finally:
            kill_pid(pid)

    def test_writing_service_outlives_daemon_process(self, units):
        """A service that keeps printing survives the daemon exiting on SIGTERM."""
        script = units.write_script("ticker.sh", """\
            while true; do echo alive; sleep 0.2; done
            """)
        units.write_unit("ticker", exec_start=str(script))
        units.enable.mkdir()
        (units.enable / "ticker.service").symlink_to(units.user / "ticker.service")
        socket_path = units.root / "ctl.sock"
        output = units.root / "daemon.log"
        env = dict(
            os.environ,
            SYSTEMCTL_USER_UNIT_DIR=str(units.user),
            SYSTEMCTL_SYSTEM_UNIT_DIR=str(units.system),
            SYSTEMCTL_ENABLE_DIR=str(units.enable),
            SYSTEMCTL_SOCKET_PATH=str(socket_path),
            SYSTEMCTL_OVERRIDES=str(units.root / "overrides.json"),
            SYSTEMCTL_DEFAULT_WORKING_DIR=str(units.work),
        )

        with output.open("wb") as log_file:
            daemon = subprocess.Popen(
                [sys.executable, "-m", "systemctl", "domain"],
                stdout=log_file, stderr=subprocess.STDOUT, env=env, cwd=str(PROJECT_ROOT),
            )
        children = []
        try:
            assert wait_until(socket_path.exists)
            children = wait_until(lambda: psutil.Process(daemon.pid).children())
            assert len(children) == 1
            assert wait_until(lambda: b"alive\n" in output.read_bytes())

            daemon.send_signal(signal.SIGTERM)
            daemon.wait(timeout=10)
            assert not socket_path.exists()

            lines_at_exit = output.read_bytes().count(b"alive\n")
            time.sleep(1.5)

            child = children[0]
            assert child.is_running() and child.status() != psutil.STATUS_ZOMBIE
            assert output.read_bytes().count(b"alive\n") > lines_at_exit
        finally:
            if daemon.poll() is None:
                daemon.kill()
                daemon.wait()
            for child in children:
                kill_pid(child.pid)

    def test_client_without_daemon(self, short_tmp):
        reply = client.send("web", "status", short_tmp / "missing.sock")

        assert reply.startswith("Error connecting to daemon")

    def test_stale_socket_file_is_replaced(self, manager, short_tmp):
        path = short_tmp / "ctl.sock"
        path.write_text("stale")
        d = Daemon(manager=manager, socket_path=path, on_reboot=lambda: None)

        d.open()
        try:
            assert stat.S_ISSOCK(path.stat().st_mode)
        finally:
            d.close()

    def test_run_fails_when_listener_cannot_bind(self, manager, short_tmp):
        blocker = short_tmp / "file"
        blocker.write_text("")
        d = Daemon(manager=manager, socket_path=blocker / "ctl.sock", on_reboot=lambda: None, reaper_interval=0.05)

        assert d.run() is False
        assert wait_until(lambda: d.shutdown_signal_received.is_set())
