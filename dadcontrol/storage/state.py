"""JSON persistence of engine counters across restarts."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from dadcontrol.analyzers.usage import ActivityUsage
from dadcontrol.policies.enforcer import EngineSnapshot

logger = logging.getLogger(__name__)


class StateStore:
    """Reads and writes the engine snapshot as a small JSON document.

    Layout:
        {"lastControlTime": "2024-01-26T14:32:15",
         "activityDuration": {"5": {"GTA": "15m0s"}}}
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Optional[EngineSnapshot]:
        """Load the persisted snapshot.

        Returns:
            The snapshot, or None when there is no usable state file
        """
        if not self.path.exists():
            return None

        logger.info(f"Found state file {self.path}, reloading it")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failure to read state file: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.warning(f"Failure to parse state file: {e}")
            return None

        try:
            return self._from_dict(data)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(f"Failure to parse state file: {e}")
            return None

    def save(self, snapshot: EngineSnapshot) -> bool:
        """Write the snapshot, replacing the previous file.

        Returns:
            True if the state was written
        """
        data = {
            "lastControlTime": snapshot.last_control_time.isoformat(),
            "activityDuration": snapshot.usage.to_dict(),
        }

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.warning(f"Failure to write state file: {e}")
            return False
        return True

    @staticmethod
    def _from_dict(data: dict) -> EngineSnapshot:
        if not isinstance(data, dict):
            raise ValueError("state root must be an object")

        last_control_time = datetime.fromisoformat(data["lastControlTime"])
        # Counters are compared against naive local clock readings
        if last_control_time.tzinfo is not None:
            last_control_time = last_control_time.astimezone().replace(tzinfo=None)

        usage = ActivityUsage.from_dict(data.get("activityDuration") or {})
        return EngineSnapshot(last_control_time=last_control_time, usage=usage)
