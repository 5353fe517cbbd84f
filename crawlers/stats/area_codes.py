from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

import requests
from selectolax.lexbor import LexborHTMLParser

from crawlers.base import (
    PageFetchError,
    RunContext,
    apply_charset_fix,
    get_with_retries,
    join_url,
    sleep_seconds,
)
from crawlers.stats.area_extract import (
    extract_cities,
    extract_counties,
    extract_provinces,
)
from crawlers.stats.area_models import AreaDataset, AreaRecord, Category, ScopeFilter


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://www.stats.gov.cn/sj/tjbz/tjyqhdmhcxhfdm/2023"
DEFAULT_HOME_PAGE = "index.html"


class Fetcher(Protocol):
    def fetch(self, page: str, *, level: Category) -> LexborHTMLParser: ...


class PageFetcher:
    """GET a page relative to the site root and parse it.

    Every page path on the site is given from the root, so child pages are
    joined to `base_url` rather than to the page that linked them.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        user_agent: str = "",
        timeout_seconds: int = 30,
        max_retries: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_jitter_seconds: float = 0.25,
        request_delay_seconds: float = 0.0,
    ) -> None:
        self.base_url = base_url
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers.update({"User-Agent": user_agent})
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_jitter_seconds = backoff_jitter_seconds
        self.request_delay_seconds = request_delay_seconds

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> "PageFetcher":
        cfg = settings.get("crawlers", {}).get(Crawler.name, {})
        http_cfg = settings.get("http", {})
        return cls(
            base_url=str(cfg.get("base_url", DEFAULT_BASE_URL)).strip(),
            user_agent=str(http_cfg.get("user_agent", "")).strip(),
            timeout_seconds=int(http_cfg.get("timeout_seconds", 30)),
            max_retries=int(http_cfg.get("max_retries", 3)),
            backoff_base_seconds=float(cfg.get("backoff_base_seconds", 0.5)),
            backoff_jitter_seconds=float(cfg.get("backoff_jitter_seconds", 0.25)),
            request_delay_seconds=float(cfg.get("request_delay_seconds", 0.0)),
        )

    def fetch(self, page: str, *, level: Category, base_url: str | None = None) -> LexborHTMLParser:
        url = join_url(base_url or self.base_url, page)
        logger.debug(f"[{Crawler.name}] Fetch {level.value} -> {url}")

        try:
            resp = get_with_retries(
                self.session,
                url,
                timeout_seconds=self.timeout_seconds,
                max_retries=self.max_retries,
                backoff_base_seconds=self.backoff_base_seconds,
                backoff_jitter_seconds=self.backoff_jitter_seconds,
            )
        except requests.RequestException as exc:
            raise PageFetchError(page=page, url=url, level=level.value, cause=exc) from exc

        apply_charset_fix(resp)
        sleep_seconds(self.request_delay_seconds)
        return LexborHTMLParser(resp.text)


@dataclass(frozen=True)
class _RunPlan:
    fetcher: Fetcher
    scope: ScopeFilter
    max_workers: int
    home_page: str


class Crawler:
    """Walk the statistics site: home page -> provinces -> cities -> counties.

    Constructor arguments override the matching settings; anything left as
    `None` is read from `ctx.settings` on every `crawl()`.
    """

    name = "area_codes"

    def __init__(
        self,
        *,
        fetcher: Fetcher | None = None,
        scope: ScopeFilter | None = None,
        max_workers: int | None = None,
        home_page: str | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.scope = scope
        self.max_workers = max_workers
        self.home_page = home_page

    def crawl(self, ctx: RunContext) -> AreaDataset:
        plan = self._plan(ctx)

        if not plan.scope.is_unrestricted:
            logger.info(f"[{self.name}] Scoped crawl: {plan.scope.to_dict()}")

        provinces = self._crawl_provinces(plan)
        cities = self._crawl_level(plan, provinces, Category.CITY)
        counties = self._crawl_level(plan, cities, Category.COUNTY)

        dataset = AreaDataset(
            provinces=tuple(provinces),
            cities=tuple(cities),
            counties=tuple(counties),
            scope=plan.scope,
        )
        logger.info(f"[{self.name}] Done: {dataset.counts()}")
        return dataset

    # --- Internals ---
    def _plan(self, ctx: RunContext) -> _RunPlan:
        cfg = ctx.settings.get("crawlers", {}).get(self.name, {})

        fetcher = self.fetcher
        if fetcher is None:
            fetcher = PageFetcher.from_settings(ctx.settings)

        scope = self.scope
        if scope is None:
            scope = ScopeFilter.from_settings(cfg.get("scope"))

        max_workers = self.max_workers
        if max_workers is None:
            max_workers = int(cfg.get("max_workers", 1))

        home_page = self.home_page
        if home_page is None:
            home_page = str(cfg.get("home_page", DEFAULT_HOME_PAGE)).strip()

        return _RunPlan(
            fetcher=fetcher,
            scope=scope,
            max_workers=max(1, max_workers),
            home_page=home_page or DEFAULT_HOME_PAGE,
        )

    def _crawl_provinces(self, plan: _RunPlan) -> list[AreaRecord]:
        doc = plan.fetcher.fetch(plan.home_page, level=Category.PROVINCE)
        provinces = extract_provinces(doc)
        logger.info(f"[{self.name}] Found {len(provinces)} provinces")
        return provinces

    def _crawl_level(
        self, plan: _RunPlan, parents: list[AreaRecord], level: Category
    ) -> list[AreaRecord]:
        if level is Category.CITY:
            allowed, extract = plan.scope.allows_province, extract_cities
        else:
            allowed, extract = plan.scope.allows_city, extract_counties

        expandable = self._expandable(parents, allowed)
        filtered = len(parents) - len(expandable)
        children = self._fold(plan, expandable, level, extract)

        parent_level = parents[0].category.value if parents else "parent"
        logger.info(
            f"[{self.name}] Found {len(children)} {level.value} records under "
            f"{len(expandable)} {parent_level} pages ({filtered} filtered out)"
        )
        return children

    def _expandable(
        self, parents: Iterable[AreaRecord], allowed: Callable[[str], bool]
    ) -> list[AreaRecord]:
        out: list[AreaRecord] = []
        for parent in parents:
            if not allowed(parent.code):
                continue
            if not parent.page:
                logger.debug(f"[{self.name}] No child page for {parent.code} {parent.name}")
                continue
            out.append(parent)
        return out

    def _fold(
        self,
        plan: _RunPlan,
        parents: list[AreaRecord],
        level: Category,
        extract: Callable[[LexborHTMLParser, str], list[AreaRecord]],
    ) -> list[AreaRecord]:
        def _expand(parent: AreaRecord) -> list[AreaRecord]:
            doc = plan.fetcher.fetch(parent.page or "", level=level)
            children = extract(doc, parent.code)
            if not children:
                logger.debug(f"[{self.name}] {parent.code} {parent.name} has no {level.value} rows")
            return children

        if plan.max_workers == 1 or len(parents) <= 1:
            batches = [_expand(p) for p in parents]
        else:
            # map() yields in submission order and re-raises the first failure.
            with ThreadPoolExecutor(
                max_workers=plan.max_workers, thread_name_prefix=self.name
            ) as executor:
                batches = list(executor.map(_expand, parents))

        out: list[AreaRecord] = []
        for batch in batches:
            out.extend(batch)
        return out
