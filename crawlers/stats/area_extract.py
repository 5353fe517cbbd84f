from __future__ import annotations

import logging

from selectolax.lexbor import LexborHTMLParser, LexborNode

from crawlers.stats.area_models import AreaRecord, Category, LinkedCell, read_cell


logger = logging.getLogger(__name__)


# The marker sits on the <td> in older releases and on the <tr> in newer ones.
PROVINCE_ROW_CLASS = "provincetr"
CITY_ROW_SELECTOR = "tr.citytr"
COUNTY_ROW_SELECTOR = "tr.countytr"

_PAGE_EXT = ".html"


def _strip_ext(page: str) -> str:
    if page.endswith(_PAGE_EXT):
        return page[: -len(_PAGE_EXT)].strip()
    return page


def _has_class(node: LexborNode | None, name: str) -> bool:
    if node is None:
        return False
    return name in (node.attributes.get("class") or "").split()


def _is_province_anchor(a: LexborNode) -> bool:
    td = a.parent
    if td is None or td.tag != "td":
        return False
    if _has_class(td, PROVINCE_ROW_CLASS):
        return True
    tr = td.parent
    return tr is not None and tr.tag == "tr" and _has_class(tr, PROVINCE_ROW_CLASS)


def extract_provinces(doc: LexborHTMLParser) -> list[AreaRecord]:
    """Province links from the home page, in document order.

    Example markup:
      <tr class="provincetr">
        <td><a href="11.html">北京市<br></a></td>
        <td><a href="12.html">天津市<br></a></td>
      </tr>
    """
    out: list[AreaRecord] = []

    # One pass over every anchor keeps document order across both marker shapes.
    for a in doc.css("a"):
        if not _is_province_anchor(a):
            continue

        page = (a.attributes.get("href") or "").strip()
        if not page.endswith(_PAGE_EXT):
            continue

        out.append(
            AreaRecord(
                category=Category.PROVINCE,
                name=a.text(strip=True),
                code=_strip_ext(page),
                page=page,
                parent_code=None,
            )
        )

    return out


def extract_cities(doc: LexborHTMLParser, parent_code: str) -> list[AreaRecord]:
    """City rows from one province page.

    Example markup:
      <tr class="citytr">
        <td><a href="42/4202.html">420200000000</a></td>
        <td><a href="42/4202.html">黄石市</a></td>
      </tr>
    """
    out: list[AreaRecord] = []

    for tr in doc.css(CITY_ROW_SELECTOR):
        cells = [read_cell(td) for td in tr.css("td")[:2]]
        if len(cells) < 2 or not all(isinstance(c, LinkedCell) for c in cells):
            logger.warning(
                f"[area_codes] Skipping malformed city row under {parent_code}: "
                f"{tr.text(separator=' ', strip=True)!r}"
            )
            continue

        code_cell, name_cell = cells
        out.append(
            AreaRecord(
                category=Category.CITY,
                name=name_cell.text,
                code=code_cell.text,
                page=code_cell.href,
                parent_code=parent_code,
            )
        )

    return out


def extract_counties(doc: LexborHTMLParser, parent_code: str) -> list[AreaRecord]:
    """County rows from one city page.

    Leaf districts carry plain text, the rest link one level deeper; both
    shapes are read the same way and never produce a page:
      <tr class="countytr"><td>421101000000</td><td>市辖区</td></tr>
      <tr class="countytr">
        <td><a href="11/421102.html">421102000000</a></td>
        <td><a href="11/421102.html">黄州区</a></td>
      </tr>
    """
    out: list[AreaRecord] = []

    for tr in doc.css(COUNTY_ROW_SELECTOR):
        cells = [read_cell(td) for td in tr.css("td")[:2]]
        if len(cells) < 2:
            logger.warning(
                f"[area_codes] Skipping malformed county row under {parent_code}: "
                f"{tr.text(separator=' ', strip=True)!r}"
            )
            continue

        code_cell, name_cell = cells
        out.append(
            AreaRecord(
                category=Category.COUNTY,
                name=name_cell.text,
                code=code_cell.text,
                page=None,
                parent_code=parent_code,
            )
        )

    return out
