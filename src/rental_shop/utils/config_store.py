"""Shared JSON configuration storage and booking settings."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rental_shop.config import BACK_DATE_WINDOW_DAYS


@dataclass(frozen=True)
class BookingSettings:
    """Per-installation booking rules."""

    allow_backdate_override: bool = False
    back_date_window_days: int = BACK_DATE_WINDOW_DAYS


def load_config_data(config_path: Path) -> dict[str, Any]:
    """Load configuration JSON data from disk."""
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config_data(config_path: Path, data: dict[str, Any]) -> None:
    """Persist configuration JSON data to disk."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
    )


def load_booking_settings(config_path: Path) -> BookingSettings:
    data = load_config_data(config_path)
    window = data.get("back_date_window_days", BACK_DATE_WINDOW_DAYS)
    if not isinstance(window, int) or isinstance(window, bool) or window < 0:
        window = BACK_DATE_WINDOW_DAYS
    return BookingSettings(
        allow_backdate_override=bool(data.get("allow_backdate_override", False)),
        back_date_window_days=window,
    )


def save_booking_settings(config_path: Path, settings: BookingSettings) -> None:
    payload = load_config_data(config_path)
    payload["allow_backdate_override"] = settings.allow_backdate_override
    payload["back_date_window_days"] = settings.back_date_window_days
    save_config_data(config_path, payload)
