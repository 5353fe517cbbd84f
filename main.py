from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path

from crawlers.base import CrawlError, RunContext
from crawlers.stats.area_codes import Crawler
from crawlers.stats.area_models import AreaDataset, Category, ScopeFilter
from utils.export import describe_output, write_json, write_level_jsonl
from utils.settings import load_settings, with_scope


logger = logging.getLogger("area_codes")


_LEVEL_FILES = {
    Category.PROVINCE: "provinces.jsonl",
    Category.CITY: "cities.jsonl",
    Category.COUNTY: "counties.jsonl",
}


def write_dataset(out_root: Path, dataset: AreaDataset, *, run_date: str, started_at: str) -> Path:
    latest_dir = out_root / "latest"

    levels = {
        Category.PROVINCE: dataset.provinces,
        Category.CITY: dataset.cities,
        Category.COUNTY: dataset.counties,
    }
    outputs = []
    for category, records in levels.items():
        path = latest_dir / _LEVEL_FILES[category]
        rows = write_level_jsonl(path, records)
        outputs.append(describe_output(path, rows))

    summary = {
        "run_date_utc": run_date,
        "started_at_utc": started_at,
        "crawler": Crawler.name,
        "scope": dataset.scope.to_dict(),
        "counts": dataset.counts(),
    }
    summary_path = latest_dir / "summary.json"
    write_json(summary_path, summary)
    outputs.append(describe_output(summary_path))

    manifest = {
        "run_date_utc": run_date,
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "schema_version": 1,
        "outputs": outputs,
    }
    write_json(latest_dir / "manifest.json", manifest)
    return latest_dir


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        description="Crawl the administrative division codes and write them per level"
    )
    ap.add_argument("--settings", default="config/settings.yaml")
    ap.add_argument("--out", default="data", help="Output root")
    ap.add_argument("--debug", action="store_true")
    ap.add_argument(
        "--dev-scope",
        action="store_true",
        help="Only expand province 42 and city 421100000000",
    )
    ap.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Sibling pages fetched concurrently (overrides settings)",
    )
    ap.add_argument(
        "--run-date", default="", help="UTC date YYYY-MM-DD (defaults to today)"
    )

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings)
    if args.dev_scope:
        settings = with_scope(settings, Crawler.name, ScopeFilter.development().to_dict())

    now = datetime.now(timezone.utc)
    run_date = args.run_date.strip() or now.strftime("%Y-%m-%d")

    ctx = RunContext(
        run_date_utc=run_date,
        started_at_utc=now.isoformat(),
        settings=settings,
        debug=bool(args.debug),
    )

    crawler = Crawler(max_workers=args.max_workers)
    try:
        dataset = crawler.crawl(ctx)
    except CrawlError as exc:
        logger.error(f"Crawl aborted, nothing written: {exc}")
        return 1

    latest_dir = write_dataset(
        Path(args.out),
        dataset,
        run_date=run_date,
        started_at=ctx.started_at_utc,
    )

    print(f"Wrote {sum(dataset.counts().values())} rows to {latest_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
