"""Configuration loading for dadcontrol.

Loads the activity policy and operational settings from a JSON file (or a
TOML file with the same structure) and reloads it when the file changes.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import tomli

from dadcontrol.durations import parse_duration
from dadcontrol.models import Weekday
from dadcontrol.policies.models import PolicyModel

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("dad-controller.json")
DEFAULT_STATE_PATH = Path("dad-controller.state")
DEFAULT_SAMPLING_INTERVAL = timedelta(minutes=1)


class ConfigError(Exception):
    """The configuration file cannot be read or is not a valid policy."""


@dataclass
class Config:
    """Loaded configuration with all sections."""

    # Scanning
    sampling_interval: timedelta = DEFAULT_SAMPLING_INTERVAL
    policy: PolicyModel = field(default_factory=PolicyModel)

    # Enforcement history
    history_enabled: bool = False
    history_db_path: Path = field(
        default_factory=lambda: Path.home() / ".local" / "share" / "dadcontrol" / "history.db"
    )
    history_retention_days: int = 90

    # Slack
    slack_enabled: bool = False
    slack_webhook_url: Optional[str] = None
    slack_dedup_window: int = 600  # 10 minutes


def load_config(config_path: Path) -> Config:
    """Load configuration from a JSON or TOML file.

    Args:
        config_path: Path to the config file; ".toml" files are parsed as TOML

    Returns:
        Config object with loaded values

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    logger.info(f"Loading config from {config_path}")

    try:
        if config_path.suffix == ".toml":
            with open(config_path, "rb") as f:
                data = tomli.load(f)
        else:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except (json.JSONDecodeError, tomli.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {config_path}: {e}") from e

    return parse_config(data)


def parse_config(data: Any) -> Config:
    """Build a Config from decoded file contents.

    Raises:
        ConfigError: If a value has the wrong shape
    """
    if not isinstance(data, dict):
        raise ConfigError("Config root must be an object")

    config = Config()

    try:
        if "samplingInterval" in data:
            config.sampling_interval = parse_duration(data["samplingInterval"])
            if config.sampling_interval <= timedelta(0):
                raise ConfigError("samplingInterval must be positive")

        config.policy = parse_rules(data.get("rules") or [])

        # History section
        if "history" in data:
            history = data["history"]
            if "enabled" in history:
                config.history_enabled = _parse_bool("history.enabled", history["enabled"])
            if "path" in history:
                config.history_db_path = Path(history["path"]).expanduser()
            if "retentionDays" in history:
                config.history_retention_days = int(history["retentionDays"])

        # Slack section
        if "slack" in data:
            slack = data["slack"]
            if "enabled" in slack:
                config.slack_enabled = _parse_bool("slack.enabled", slack["enabled"])
            if "webhookUrl" in slack:
                config.slack_webhook_url = slack["webhookUrl"]
            if "dedupWindow" in slack:
                config.slack_dedup_window = int(slack["dedupWindow"])
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    return config


def _parse_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def parse_rules(rules_data: list[dict]) -> PolicyModel:
    """Build the policy model from the "rules" array.

    Rules sharing a name are merged into one.
    """
    policy = PolicyModel()

    for rule_data in rules_data:
        name = rule_data["name"]
        if not isinstance(name, str):
            raise ValueError(f"Rule name must be a string, got {name!r}")

        rule = policy.get_or_create_rule(name)
        for pattern in rule_data.get("programs") or []:
            rule.add_process_pattern(pattern)

        for day_key, schedule_data in (rule_data.get("schedules") or {}).items():
            day = Weekday.parse(day_key)
            # A listed day is allowed even with no periods (it then never matches a time)
            rule.get_or_create_schedule(day)
            for period in schedule_data.get("allowedPeriods") or []:
                rule.add_allowed_period([day], int(period["begin"]), int(period["end"]))
            if "maxDuration" in schedule_data:
                rule.set_max_duration_per_day([day], parse_duration(schedule_data["maxDuration"]))

    return policy


class ConfigWatcher:
    """Reloads the configuration file whenever its modification time advances."""

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._last_mtime_ns: int = -1

    def load(self) -> Config:
        """Load the configuration unconditionally.

        Raises:
            ConfigError: If the file is missing or invalid
        """
        try:
            mtime_ns = self.config_path.stat().st_mtime_ns
        except OSError as e:
            raise ConfigError(f"Cannot stat config file {self.config_path}: {e}") from e

        config = load_config(self.config_path)
        self._last_mtime_ns = mtime_ns
        return config

    def reload_if_needed(self) -> Optional[Config]:
        """Return a freshly loaded config if the file changed, None otherwise.

        Failures are logged and the caller keeps its current configuration.
        """
        try:
            mtime_ns = self.config_path.stat().st_mtime_ns
        except OSError as e:
            logger.warning(f"Cannot stat config file {self.config_path}: {e}")
            return None

        if mtime_ns <= self._last_mtime_ns:
            return None

        logger.info("Detected change of configuration, reloading it")
        try:
            config = load_config(self.config_path)
        except ConfigError as e:
            logger.error(f"Keeping previous configuration: {e}")
            # Do not retry until the file changes again
            self._last_mtime_ns = mtime_ns
            return None

        self._last_mtime_ns = mtime_ns
        return config
