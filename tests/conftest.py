from __future__ import annotations

from pathlib import Path

import pytest
from selectolax.lexbor import LexborHTMLParser

from crawlers.stats.area_models import Category


FIXTURES = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def parse_fixture(name: str) -> LexborHTMLParser:
    return LexborHTMLParser(read_fixture(name))


class FakeFetcher:
    """Serve parsed pages from memory and record what was requested."""

    def __init__(self, pages: dict[str, str], *, fail: dict[str, Exception] | None = None) -> None:
        self.pages = pages
        self.fail = fail or {}
        self.calls: list[tuple[str, Category]] = []

    def fetch(self, page: str, *, level: Category) -> LexborHTMLParser:
        self.calls.append((page, level))
        if page in self.fail:
            raise self.fail[page]
        return LexborHTMLParser(self.pages.get(page, "<html><body></body></html>"))

    @property
    def fetched_pages(self) -> list[str]:
        return [page for page, _ in self.calls]


@pytest.fixture
def site_pages() -> dict[str, str]:
    return {
        "index.html": read_fixture("index.html"),
        "42.html": read_fixture("42.html"),
        "42/4211.html": read_fixture("4211.html"),
        "11.html": """
            <table><tr class="citytr">
              <td><a href="11/1101.html">110100000000</a></td>
              <td><a href="11/1101.html">市辖区</a></td>
            </tr></table>
        """,
        "11/1101.html": """
            <table><tr class="countytr">
              <td><a href="01/110101.html">110101000000</a></td>
              <td><a href="01/110101.html">东城区</a></td>
            </tr></table>
        """,
    }
