from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Iterable

from crawlers.stats.area_models import AreaRecord


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


def write_level_jsonl(path: Path, records: Iterable[AreaRecord]) -> int:
    """Write one area record per line, keeping crawl order."""
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec.to_dict(), ensure_ascii=False, sort_keys=True))
            f.write("\n")
            count += 1
    return count


def describe_output(path: Path, rows: int | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {
        "path": str(path.as_posix()),
        "sha256": sha256_file(path),
        "bytes": path.stat().st_size,
    }
    if rows is not None:
        out["rows"] = rows
    return out
