"""Filesystem paths for RentalShop."""

from __future__ import annotations

import os
from pathlib import Path

from rental_shop.config import (
    APP_DATA_DIRNAME,
    CONFIG_FILENAME,
    DB_FILENAME,
    INVOICES_DIRNAME,
    LOGS_DIRNAME,
)


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_app_data_dir() -> Path:
    """Create and return the app data directory for the current user.

    ``RENTAL_SHOP_HOME`` wins over ``APPDATA`` so tests and servers can pin
    the location.
    """
    override = os.getenv("RENTAL_SHOP_HOME")
    if override:
        return _ensure_dir(Path(override))
    appdata = os.getenv("APPDATA")
    if appdata:
        base_dir = Path(appdata)
    else:
        base_dir = Path.home() / ".rental_shop"
    return _ensure_dir(base_dir / APP_DATA_DIRNAME)


def get_db_path() -> Path:
    """Return the path to the SQLite database file."""
    return get_app_data_dir() / DB_FILENAME


def get_config_path() -> Path:
    """Return the path to the JSON settings file."""
    return get_app_data_dir() / CONFIG_FILENAME


def get_logs_dir() -> Path:
    """Create and return the log directory inside the app data folder."""
    return _ensure_dir(get_app_data_dir() / LOGS_DIRNAME)


def get_invoices_dir() -> Path:
    """Create and return the invoice PDF directory inside the app data folder."""
    return _ensure_dir(get_app_data_dir() / INVOICES_DIRNAME)
