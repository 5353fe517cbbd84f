from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_settings(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError("settings.yaml must be a mapping/object")

    for section in ("http", "crawlers"):
        value = data.get(section)
        if value is not None and not isinstance(value, dict):
            raise ValueError(f"settings.yaml: '{section}' must be a mapping")

    return data


def with_scope(settings: dict[str, Any], crawler: str, scope: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of settings with the crawler's scope block replaced."""
    crawlers = dict(settings.get("crawlers") or {})
    cfg = dict(crawlers.get(crawler) or {})
    cfg["scope"] = scope
    crawlers[crawler] = cfg
    return {**settings, "crawlers": crawlers}
