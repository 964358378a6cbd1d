"""Tests for the psutil-backed process collector and terminator."""

import logging

import psutil
import pytest

from dadcontrol.actuators import terminator
from dadcontrol.collectors import processes
from dadcontrol.models import RunningProcess


class FakeProc:
    def __init__(self, pid: int, exe=None, wait_error=None, terminate_error=None) -> None:
        self.pid = pid
        self.info = {"pid": pid, "exe": exe}
        self.wait_error = wait_error
        self.terminate_error = terminate_error
        self.terminated = False
        self.killed = False

    def terminate(self) -> None:
        if self.terminate_error:
            raise self.terminate_error
        self.terminated = True

    def wait(self, timeout=None) -> None:
        if self.wait_error:
            raise self.wait_error

    def kill(self) -> None:
        self.killed = True


class TestListRunningProcesses:
    def test_skips_processes_without_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        procs = [FakeProc(1, "/usr/bin/vim"), FakeProc(2, None), FakeProc(3, "C:\\GTA.exe")]
        monkeypatch.setattr(processes.psutil, "process_iter", lambda attrs=None: iter(procs))

        result = processes.list_running_processes()

        assert result == [
            RunningProcess(pid=1, path="/usr/bin/vim"),
            RunningProcess(pid=3, path="C:\\GTA.exe"),
        ]


class TestTerminateProcesses:
    def _patch(self, monkeypatch: pytest.MonkeyPatch, procs: dict[int, FakeProc]) -> None:
        def make_process(pid: int) -> FakeProc:
            if pid not in procs:
                raise psutil.NoSuchProcess(pid)
            return procs[pid]

        monkeypatch.setattr(terminator.psutil, "Process", make_process)

    def test_terminates_every_process(self, monkeypatch: pytest.MonkeyPatch) -> None:
        procs = {1: FakeProc(1), 2: FakeProc(2)}
        self._patch(monkeypatch, procs)

        terminator.terminate_processes(
            "GTA",
            [RunningProcess(1, "C:\\GTA.exe"), RunningProcess(2, "C:\\GTALauncher.exe")],
            "activity not allowed on this day",
        )

        assert procs[1].terminated and procs[2].terminated
        assert not procs[1].killed

    def test_kills_after_grace_period(self, monkeypatch: pytest.MonkeyPatch) -> None:
        procs = {1: FakeProc(1, wait_error=psutil.TimeoutExpired(3.0, pid=1))}
        self._patch(monkeypatch, procs)

        terminator.terminate_processes("GTA", [RunningProcess(1, "C:\\GTA.exe")], "reason")

        assert procs[1].killed

    def test_failures_do_not_stop_other_processes(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        procs = {
            2: FakeProc(2, terminate_error=psutil.AccessDenied(2)),
            3: FakeProc(3),
        }
        self._patch(monkeypatch, procs)

        with caplog.at_level(logging.WARNING):
            terminator.terminate_processes(
                "GTA",
                [
                    RunningProcess(1, "C:\\gone.exe"),
                    RunningProcess(2, "C:\\system.exe"),
                    RunningProcess(3, "C:\\GTA.exe"),
                ],
                "reason",
            )

        assert procs[3].terminated
        assert "Failure to kill process 2" in caplog.text
