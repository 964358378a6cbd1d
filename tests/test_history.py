"""Tests for the DuckDB enforcement history."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from dadcontrol.models import Enforcement, RunningProcess, ViolationReason, Weekday
from dadcontrol.storage import HistoryStore


def make_enforcement(
    activity: str = "GTA",
    reason: ViolationReason = ViolationReason.DURATION_EXCEEDED,
    timestamp: datetime = datetime(2024, 1, 15, 12, 1),
) -> Enforcement:
    return Enforcement(
        activity=activity,
        processes=[
            RunningProcess(pid=1, path="C:\\GTA.exe"),
            RunningProcess(pid=2, path="C:\\GTALauncher.exe"),
        ],
        reason=reason,
        timestamp=timestamp,
        weekday=Weekday.of(timestamp),
        duration=timedelta(minutes=16),
    )


@pytest.fixture()
def store(tmp_path: Path) -> HistoryStore:
    """Provide a connected HistoryStore on a temp DB."""
    history = HistoryStore(tmp_path / "history.db")
    history.connect()
    yield history  # type: ignore[misc]
    history.close()


class TestHistoryStore:
    def test_requires_connection(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            HistoryStore(tmp_path / "history.db").conn

    def test_insert_and_read_back(self, store: HistoryStore) -> None:
        store.insert_enforcement(make_enforcement())

        rows = store.get_recent_enforcements()

        assert len(rows) == 1
        row = rows[0]
        assert row["activity"] == "GTA"
        assert row["reason"] == "activity duration above threshold for this day"
        assert row["weekday"] == int(Weekday.MONDAY)
        assert list(row["pids"]) == [1, 2]
        assert list(row["paths"]) == ["C:\\GTA.exe", "C:\\GTALauncher.exe"]
        assert row["duration_seconds"] == 960.0

    def test_newest_first_and_filter(self, store: HistoryStore) -> None:
        store.insert_enforcement(make_enforcement(timestamp=datetime(2024, 1, 15, 12, 1)))
        store.insert_enforcement(make_enforcement(timestamp=datetime(2024, 1, 15, 12, 2)))
        store.insert_enforcement(make_enforcement(activity="Minecraft", timestamp=datetime(2024, 1, 15, 12, 3)))

        rows = store.get_recent_enforcements(limit=10)
        assert [r["activity"] for r in rows] == ["Minecraft", "GTA", "GTA"]

        gta_rows = store.get_recent_enforcements(limit=1, activity="GTA")
        assert len(gta_rows) == 1
        assert gta_rows[0]["timestamp"] == datetime(2024, 1, 15, 12, 2)

    def test_activity_stats(self, store: HistoryStore) -> None:
        store.insert_enforcement(make_enforcement())
        store.insert_enforcement(make_enforcement(timestamp=datetime(2024, 1, 15, 13, 0)))
        store.insert_enforcement(make_enforcement(reason=ViolationReason.DAY_NOT_ALLOWED))

        stats = store.get_activity_stats(datetime(2024, 1, 15))

        assert stats[0]["activity"] == "GTA"
        assert stats[0]["reason"] == ViolationReason.DURATION_EXCEEDED.value
        assert stats[0]["kills"] == 2
        assert stats[0]["last_kill"] == datetime(2024, 1, 15, 13, 0)

    def test_cleanup_old_data(self, store: HistoryStore) -> None:
        store.insert_enforcement(make_enforcement(timestamp=datetime(2024, 1, 1, 12, 0)))
        store.insert_enforcement(make_enforcement(timestamp=datetime(2024, 1, 15, 12, 0)))

        deleted = store.cleanup_old_data(7, now=datetime(2024, 1, 16))

        assert deleted == 1
        assert len(store.get_recent_enforcements()) == 1

    def test_reopen_keeps_schema(self, tmp_path: Path) -> None:
        path = tmp_path / "history.db"
        with HistoryStore(path) as history:
            history.insert_enforcement(make_enforcement())

        with HistoryStore(path) as history:
            history.insert_enforcement(make_enforcement())
            assert len(history.get_recent_enforcements()) == 2

        with HistoryStore(path, read_only=True) as history:
            assert len(history.get_recent_enforcements()) == 2
