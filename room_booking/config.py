from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
import os
from pathlib import Path
from typing import Any

import holidays as pyholidays
import yaml

from .errors import ConfigError

CONFIG_ENV_VAR = "ROOM_BOOKING_CONFIG"
SATURDAY = 5
SUNDAY = 6
_HOLIDAY_CACHE: dict[tuple[str, int], set[date]] = {}


@dataclass(frozen=True)
class OperatingWindow:
    open_hour: int
    close_hour: int

    def __post_init__(self) -> None:
        if not 0 <= self.open_hour < self.close_hour <= 23:
            raise ConfigError(f"Invalid operating window: {self.open_hour}-{self.close_hour}")

    @property
    def opens_at(self) -> time:
        return time(self.open_hour, 0)

    @property
    def closes_at(self) -> time:
        return time(self.close_hour, 0)

    def contains(self, value: time) -> bool:
        return self.opens_at <= value <= self.closes_at


@dataclass(frozen=True)
class BookingRules:
    rooms: tuple[str, ...] = ("1", "2", "3", "4")
    closed_weekday: int = SUNDAY
    weekday_hours: OperatingWindow = OperatingWindow(8, 18)
    weekend_hours: OperatingWindow = OperatingWindow(9, 15)
    min_persons: int = 2
    max_duration: timedelta = timedelta(hours=2)
    extension_increment: timedelta = timedelta(hours=2)
    min_advance_notice: timedelta = timedelta(days=1)
    holiday_country: str | None = None

    def __post_init__(self) -> None:
        if not self.rooms:
            raise ConfigError("At least one room must be configured.")
        if not 0 <= self.closed_weekday <= 6:
            raise ConfigError("closed_weekday must be between 0 (Monday) and 6 (Sunday).")
        if self.min_persons < 1:
            raise ConfigError("min_persons must be at least 1.")
        for name in ("max_duration", "extension_increment"):
            if getattr(self, name) <= timedelta(0):
                raise ConfigError(f"{name} must be positive.")
        if self.min_advance_notice < timedelta(0):
            raise ConfigError("min_advance_notice must not be negative.")

    def is_closed(self, day: date) -> bool:
        return day.weekday() == self.closed_weekday or self.is_holiday(day)

    def is_holiday(self, day: date) -> bool:
        if not self.holiday_country:
            return False
        key = (self.holiday_country, day.year)
        if key not in _HOLIDAY_CACHE:
            holiday_map = pyholidays.country_holidays(self.holiday_country, years=[day.year])
            _HOLIDAY_CACHE[key] = set(holiday_map.keys())
        return day in _HOLIDAY_CACHE[key]

    def window_for(self, day: date) -> OperatingWindow | None:
        """Opening hours for ``day``, or None when the facility is closed."""
        if self.is_closed(day):
            return None
        if day.weekday() in (SATURDAY, SUNDAY):
            return self.weekend_hours
        return self.weekday_hours


@dataclass(frozen=True)
class StorageSettings:
    backend: str = "yaml"
    data_dir: Path = Path("data")
    url: str = "sqlite:///data/reservations.db"
    timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.backend not in ("yaml", "sql"):
            raise ConfigError(f"Unsupported storage backend: {self.backend}")
        if self.timeout_seconds <= 0:
            raise ConfigError("timeout_seconds must be positive.")


@dataclass(frozen=True)
class AppConfig:
    rules: BookingRules = field(default_factory=BookingRules)
    storage: StorageSettings = field(default_factory=StorageSettings)


def load_config(path: str | Path | None = None) -> AppConfig:
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return AppConfig()

    config_path = Path(path)
    try:
        payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as error:
        raise ConfigError(f"Failed to read config file: {config_path}") from error

    if payload is None:
        return AppConfig()
    if not isinstance(payload, dict):
        raise ConfigError("Top-level config must be a mapping.")

    return AppConfig(
        rules=_parse_rules(_section(payload, "rules")),
        storage=_parse_storage(_section(payload, "storage")),
    )


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    section = payload.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping.")
    return section


def _parse_rules(data: dict[str, Any]) -> BookingRules:
    defaults = BookingRules()
    try:
        rooms = data.get("rooms")
        return BookingRules(
            rooms=tuple(str(room) for room in rooms) if rooms is not None else defaults.rooms,
            closed_weekday=int(data.get("closed_weekday", defaults.closed_weekday)),
            weekday_hours=_parse_window(data.get("weekday_hours"), defaults.weekday_hours),
            weekend_hours=_parse_window(data.get("weekend_hours"), defaults.weekend_hours),
            min_persons=int(data.get("min_persons", defaults.min_persons)),
            max_duration=_hours(data.get("max_duration_hours"), defaults.max_duration),
            extension_increment=_hours(data.get("extension_increment_hours"), defaults.extension_increment),
            min_advance_notice=timedelta(days=float(data["min_advance_notice_days"]))
            if "min_advance_notice_days" in data
            else defaults.min_advance_notice,
            holiday_country=(str(data["holiday_country"]) if data.get("holiday_country") else None),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as error:
        raise ConfigError(f"Invalid rules section: {error}") from error


def _parse_window(data: Any, default: OperatingWindow) -> OperatingWindow:
    if data is None:
        return default
    if not isinstance(data, dict):
        raise ConfigError("Operating hours must be a mapping with open_hour and close_hour.")
    return OperatingWindow(
        open_hour=int(data.get("open_hour", default.open_hour)),
        close_hour=int(data.get("close_hour", default.close_hour)),
    )


def _hours(value: Any, default: timedelta) -> timedelta:
    if value is None:
        return default
    return timedelta(hours=float(value))


def _parse_storage(data: dict[str, Any]) -> StorageSettings:
    defaults = StorageSettings()
    try:
        return StorageSettings(
            backend=str(data.get("backend", defaults.backend)),
            data_dir=Path(data.get("data_dir", defaults.data_dir)),
            url=str(data.get("url", defaults.url)),
            timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as error:
        raise ConfigError(f"Invalid storage section: {error}") from error
