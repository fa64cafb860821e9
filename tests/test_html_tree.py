import pytest

from feed_stream.html_tree import HtmlDocument


HTML = """
<html><body>
  <div id="main" class="feed">
    <div class="item first" data-id="1"><a href="/a">Hello <b>big</b> world</a></div>
    <div class="item" data-id="2"><img src="x.png"><span>two</span></div>
    <p class="item">para</p>
  </div>
  <div class="item" data-id="3">outside</div>
</body></html>
"""


def test_select_by_class_in_document_order():
    doc = HtmlDocument(HTML)
    items = doc.select(".item")
    assert [el.attr("data-id") for el in items] == ["1", "2", "", "3"]


def test_select_tag_class_and_attr():
    doc = HtmlDocument(HTML)
    assert len(doc.select("div.item")) == 3
    assert [el.attr("data-id") for el in doc.select("[data-id=2]")] == ["2"]
    assert len(doc.select("[data-id]")) == 3


def test_descendant_selector_is_scoped():
    doc = HtmlDocument(HTML)
    inside = doc.select("#main .item")
    assert len(inside) == 3
    assert doc.select_one("#main .item.first").attr("data-id") == "1"


def test_text_keeps_document_order_and_collapses_whitespace():
    doc = HtmlDocument(HTML)
    link = doc.select_one(".first a")
    assert link.text() == "Hello big world"


def test_void_tags_do_not_swallow_siblings():
    doc = HtmlDocument(HTML)
    second = doc.select_one("[data-id=2]")
    img = second.select_one("img")
    assert img.attr("src") == "x.png"
    assert img.select("span") == []
    assert second.select_one("span").text() == "two"


def test_missing_attr_and_element():
    doc = HtmlDocument(HTML)
    el = doc.select_one("p.item")
    assert el.attr("data-id") == ""
    assert not el.has_attr("data-id")
    assert doc.select_one(".nope") is None


def test_element_select_is_relative():
    doc = HtmlDocument(HTML)
    first = doc.select_one(".first")
    assert first.select(".item") == []
    assert first.select_one("b").text() == "big"


def test_unsupported_selector():
    doc = HtmlDocument(HTML)
    with pytest.raises(ValueError):
        doc.select("div > a")


def test_empty_document():
    doc = HtmlDocument("")
    assert len(doc) == 0
    assert doc.select("div") == []
