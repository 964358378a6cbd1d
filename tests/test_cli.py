"""Tests for the command-line interface."""

import asyncio
import json
from datetime import datetime, timedelta
from pathlib import Path

from click.testing import CliRunner

from dadcontrol.analyzers import ActivityUsage
from dadcontrol.cli import main
from dadcontrol.models import RunningProcess, Weekday
from dadcontrol.policies import EngineSnapshot
from dadcontrol.storage import StateStore

POLICY = {
    "samplingInterval": "1m",
    "rules": [
        {
            "name": "GTA",
            "programs": ["GTA\\.exe$"],
            "schedules": {
                day: {"allowedPeriods": [{"begin": 2000, "end": 2100}], "maxDuration": "15m"}
                for day in ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
            },
        }
    ],
}


def write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "dad-controller.json"
    path.write_text(json.dumps(data))
    return path


class TestCheckCommand:
    def test_valid_policy(self, tmp_path: Path) -> None:
        config = write_config(tmp_path, POLICY)

        result = CliRunner().invoke(main, ["--config", str(config), "check"])

        assert result.exit_code == 0
        assert "GTA" in result.output
        assert "20:00-21:00" in result.output
        assert "1 activities OK" in result.output

    def test_invalid_pattern_fails(self, tmp_path: Path) -> None:
        config = write_config(tmp_path, {"rules": [{"name": "GTA", "programs": ["GTA("]}]})

        result = CliRunner().invoke(main, ["--config", str(config), "check"])

        assert result.exit_code == 1
        assert "Invalid pattern" in result.output

    def test_missing_config_fails(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["--config", str(tmp_path / "none.json"), "check"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestStatusCommand:
    def test_shows_today_usage(self, tmp_path: Path) -> None:
        config = write_config(tmp_path, POLICY)
        state = tmp_path / "dad-controller.state"
        now = datetime.now()
        usage = ActivityUsage()
        usage.set(Weekday.of(now), "GTA", timedelta(minutes=7))
        StateStore(state).save(EngineSnapshot(last_control_time=now, usage=usage))

        result = CliRunner().invoke(
            main, ["--config", str(config), "--state", str(state), "status"]
        )

        assert result.exit_code == 0
        assert "7m0s" in result.output
        assert "15m0s" in result.output

    def test_without_state(self, tmp_path: Path) -> None:
        config = write_config(tmp_path, POLICY)

        result = CliRunner().invoke(
            main, ["--config", str(config), "--state", str(tmp_path / "none.state"), "status"]
        )

        assert result.exit_code == 0
        assert "No scan recorded today" in result.output


class TestHistoryCommand:
    def test_no_history(self, tmp_path: Path) -> None:
        data = dict(POLICY, history={"enabled": True, "path": str(tmp_path / "history.db")})
        config = write_config(tmp_path, data)

        result = CliRunner().invoke(main, ["--config", str(config), "history"])

        assert result.exit_code == 0
        assert "No enforcement history recorded" in result.output


class TestRunCommand:
    def test_one_scan_saves_state_and_kills(self, tmp_path: Path, monkeypatch) -> None:
        never_allowed = {"samplingInterval": "1m", "rules": [{"name": "GTA", "programs": ["GTA\\.exe$"]}]}
        config = write_config(tmp_path, never_allowed)
        state = tmp_path / "dad-controller.state"
        gta = RunningProcess(pid=42, path="C:\\Games\\GTA.exe")
        events: list[str] = []
        killed: list[tuple] = []

        async def fake_sleep(seconds: float) -> None:
            events.append(f"sleep {seconds:g}")
            if len(events) > 1:
                # Second sleep: the first scan must have been persisted already
                assert state.exists()
                raise asyncio.CancelledError()
            assert not state.exists()

        def fake_list() -> list[RunningProcess]:
            events.append("scan")
            return [gta]

        def fake_terminate(activity: str, processes: list[RunningProcess], reason: str) -> None:
            killed.append((activity, [p.pid for p in processes], reason))

        monkeypatch.setattr("dadcontrol.cli.asyncio.sleep", fake_sleep)
        monkeypatch.setattr("dadcontrol.cli.list_running_processes", fake_list)
        monkeypatch.setattr("dadcontrol.cli.terminate_processes", fake_terminate)

        result = CliRunner().invoke(
            main, ["--config", str(config), "--state", str(state), "run"]
        )

        assert result.exit_code == 0, result.output
        assert events == ["sleep 60", "scan", "sleep 60"]
        assert killed == [("GTA", [42], "activity not allowed on this day")]
        assert "[KILL]" in result.output
        assert "Scans: 1" in result.output
        assert "Enforcements: 1" in result.output

        saved = json.loads(state.read_text())
        assert saved["activityDuration"][str(int(Weekday.of(datetime.now())))] == {"GTA": "1m0s"}
