from __future__ import annotations

from dataclasses import dataclass
import random
import time
from typing import Any

import requests

@dataclass(frozen=True)
class RunContext:
    run_date_utc: str
    started_at_utc: str
    settings: dict[str, Any]
    debug: bool = False

class CrawlError(RuntimeError):
    """A run-level failure; the collected dataset must not be used."""

class PageFetchError(CrawlError):
    def __init__(self, *, page: str, url: str, level: str, cause: Exception) -> None:
        self.page = page
        self.url = url
        self.level = level
        self.cause = cause
        super().__init__(f"failed to fetch {level} page {page!r} ({url}): {cause}")


def join_url(*segments: str) -> str:
    # Strip every leading/trailing slash so callers may pass either form.
    return "/".join(s.strip("/") for s in segments)

def sleep_seconds(seconds: float) -> None:
    if seconds <= 0:
        return
    time.sleep(seconds)

def compute_backoff_seconds(
    attempt: int,
    *,
    base: float,
    jitter: float,
    max_backoff_seconds: float = 30.0,
) -> float:
    exp = base * (2**attempt)
    exp = min(exp, max_backoff_seconds)
    if jitter > 0:
        exp += random.uniform(0.0, jitter)
    return exp

def get_with_retries(
    session,
    url,
    *,
    timeout_seconds,
    max_retries,
    backoff_base_seconds,
    backoff_jitter_seconds,
    retry_statuses=(429, 500, 502, 503, 504),
) -> requests.Response:
    last_err: Exception | None = None

    for attempt in range(max_retries + 1):
        try:
            resp = session.get(url, timeout=timeout_seconds)
        except requests.RequestException as e:
            last_err = e
            if attempt >= max_retries:
                raise

            sleep_seconds(
                compute_backoff_seconds(
                    attempt,
                    base=backoff_base_seconds,
                    jitter=backoff_jitter_seconds,
                )
            )
            continue

        if resp.status_code in retry_statuses:
            if attempt >= max_retries:
                resp.raise_for_status()

            retry_after = resp.headers.get("Retry-After")
            if retry_after:
                try:
                    sleep_seconds(float(retry_after))
                except ValueError:
                    pass

            sleep_seconds(
                compute_backoff_seconds(
                    attempt,
                    base=backoff_base_seconds,
                    jitter=backoff_jitter_seconds,
                )
            )
            continue

        # Other 4xx/5xx are not transient; fail on the first one.
        resp.raise_for_status()
        return resp

    assert last_err is not None
    raise last_err

def apply_charset_fix(resp: requests.Response) -> None:
    # Pages that omit a charset make `requests` fall back to ISO-8859-1,
    # which garbles Chinese area names.
    content_type = (resp.headers.get("Content-Type") or "").lower()
    is_html = (
        ("text/html" in content_type)
        or ("application/xhtml" in content_type)
        or not content_type
    )
    if is_html:
        enc = (resp.encoding or "").strip().lower()
        if not enc or enc in ("iso-8859-1", "latin-1"):
            guessed = (getattr(resp, "apparent_encoding", None) or "").strip()
            resp.encoding = guessed or "utf-8"
