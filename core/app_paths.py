"""Centralised helpers for locating battery log data directories."""
from __future__ import annotations

import os
from pathlib import Path


def _detect_base_directory() -> Path:
    override = os.environ.get("BATTERYLOG_HOME")
    if override:
        return Path(override).expanduser().resolve()
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg).expanduser().resolve() / "batterylog"
    return Path.home().resolve() / ".batterylog"


APP_DIR: Path = _detect_base_directory()


def data_path(*parts: str) -> Path:
    """Return a path rooted inside :data:`APP_DIR` without creating it."""

    return APP_DIR.joinpath(*parts)


__all__ = ["APP_DIR", "data_path"]
