from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from scheduler.domain.enums import WeekDay


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    timezone: str = "UTC"
    week_start_day: WeekDay = WeekDay.SUNDAY
    log_level: str = "INFO"
    log_dir: str = "logs"


def _validated_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"TIMEZONE {name!r} is not a known IANA timezone.") from exc
    return name


def _week_start_day(raw: str) -> WeekDay:
    try:
        return WeekDay(int(raw))
    except ValueError as exc:
        raise RuntimeError(f"WEEK_START_DAY must be 0 (Sunday) to 6 (Saturday), got {raw!r}.") from exc


def load_settings() -> Settings:
    load_env()
    return Settings(
        timezone=_validated_timezone(os.getenv("TIMEZONE", "UTC").strip() or "UTC"),
        week_start_day=_week_start_day(os.getenv("WEEK_START_DAY", "0")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
    )


SETTINGS = load_settings()
