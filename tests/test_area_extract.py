from __future__ import annotations

import logging

from selectolax.lexbor import LexborHTMLParser

from crawlers.stats.area_extract import extract_cities, extract_counties, extract_provinces
from crawlers.stats.area_models import AreaRecord, Category, LinkedCell, PlainCell, read_cell

from conftest import parse_fixture


def test_provinces_from_home_page():
    provinces = extract_provinces(parse_fixture("index.html"))

    assert [p.code for p in provinces] == ["11", "12", "42"]
    assert provinces[0] == AreaRecord(
        category=Category.PROVINCE,
        name="北京市",
        code="11",
        page="11.html",
        parent_code=None,
    )
    assert provinces[2].name == "湖北省"


def test_provinces_with_marker_on_cell():
    provinces = extract_provinces(parse_fixture("index_cell_marker.html"))

    assert [(p.code, p.name, p.page) for p in provinces] == [
        ("11", "北京市", "11.html"),
        ("42", "湖北省", "42.html"),
    ]


def test_province_extraction_is_idempotent():
    doc = parse_fixture("index.html")
    assert extract_provinces(doc) == extract_provinces(doc)


def test_province_with_empty_text_is_kept():
    doc = LexborHTMLParser('<table><tr class="provincetr"><td><a href="50.html"> </a></td></tr></table>')
    provinces = extract_provinces(doc)
    assert len(provinces) == 1
    assert provinces[0].name == ""
    assert provinces[0].code == "50"


def test_city_rows_carry_parent_code():
    cities = extract_cities(parse_fixture("42.html"), "42")

    assert cities[0] == AreaRecord(
        category=Category.CITY,
        name="黄石市",
        code="420200000000",
        page="42/4202.html",
        parent_code="42",
    )
    assert all(c.parent_code == "42" for c in cities)


def test_city_row_without_anchors_is_skipped(caplog):
    with caplog.at_level(logging.WARNING):
        cities = extract_cities(parse_fixture("42.html"), "42")

    assert [c.code for c in cities] == ["420200000000", "421100000000"]
    assert "429000000000" in caplog.text


def test_county_rows_linked_and_plain():
    counties = extract_counties(parse_fixture("4211.html"), "421100000000")

    assert counties[0] == AreaRecord(
        category=Category.COUNTY,
        name="市辖区",
        code="421101000000",
        page=None,
        parent_code="421100000000",
    )
    assert counties[1] == AreaRecord(
        category=Category.COUNTY,
        name="黄州区",
        code="421102000000",
        page=None,
        parent_code="421100000000",
    )


def test_county_row_with_one_cell_is_skipped():
    counties = extract_counties(parse_fixture("4211.html"), "421100000000")
    assert "421121000000" not in [c.code for c in counties]
    assert len(counties) == 2


def test_no_matching_rows_means_no_children():
    doc = LexborHTMLParser("<html><body><p>nothing here</p></body></html>")
    assert extract_provinces(doc) == []
    assert extract_cities(doc, "42") == []
    assert extract_counties(doc, "421100000000") == []


def test_read_cell_variants():
    doc = LexborHTMLParser(
        "<table><tr>"
        '<td><a href="11/421102.html"> 421102000000 </a></td>'
        "<td> 市辖区 </td>"
        "<td><a>无链接</a></td>"
        "</tr></table>"
    )
    cells = [read_cell(td) for td in doc.css("td")]
    assert cells == [
        LinkedCell(text="421102000000", href="11/421102.html"),
        PlainCell(text="市辖区"),
        PlainCell(text="无链接"),
    ]


def test_record_to_dict():
    rec = AreaRecord(Category.CITY, "黄石市", "420200000000", "42/4202.html", "42")
    assert rec.to_dict() == {
        "category": "City",
        "name": "黄石市",
        "code": "420200000000",
        "page": "42/4202.html",
        "parentCode": "42",
    }


def test_provinces_keep_document_order_across_marker_shapes():
    doc = LexborHTMLParser(
        "<table>"
        '<tr class="provincetr"><td><a href="11.html">北京市</a></td></tr>'
        '<tr><td class="provincetr"><a href="12.html">天津市</a></td></tr>'
        '<tr class="provincetr"><td><a href="13.html">河北省</a></td></tr>'
        "</table>"
    )
    assert [p.code for p in extract_provinces(doc)] == ["11", "12", "13"]


def test_province_anchor_must_sit_directly_in_marked_cell():
    doc = LexborHTMLParser(
        "<table>"
        '<tr class="provincetr"><td><span><a href="14.html">山西省</a></span></td></tr>'
        '<tr class="provincetr"><td><a href="index.html#top">首页</a></td>'
        '<td><a href="15.html">内蒙古自治区</a></td></tr>'
        "</table>"
    )
    assert [p.code for p in extract_provinces(doc)] == ["15"]
