"""Tests for dom module."""

from daycare_sync import dom


def test_clean_text_collapses_whitespace_and_nbsp():
    assert dom.clean_text("  DAILY REPORT -\n   May\xa020, 2025 ") == "DAILY REPORT - May 20, 2025"


def test_text_of_none_is_empty():
    assert dom.text_of(None) == ""


def test_heading_text_normalizes_curly_quotes():
    doc = dom.load("<h3>Today’s Teacher Notes</h3>")
    assert dom.heading_text(doc.find("h3")) == "TODAY'S TEACHER NOTES"


def test_contains_text_picks_innermost_element():
    doc = dom.load("<div><p><b>DAILY REPORT -</b> June 1, 2025</p></div>")
    node = dom.find_first(doc, dom.contains_text("daily report -"))
    assert node.name == "b"


def test_find_all_in_document_order():
    doc = dom.load("<ul><li>a</li><li>b</li></ul><p>c</p><li>d</li>")
    assert [dom.text_of(n) for n in dom.find_all(doc, lambda n: n.name == "li")] == ["a", "b", "d"]


def test_collect_siblings_until_stops_before_match():
    doc = dom.load("<h2>NAPS</h2><p>one</p>loose text<p>two</p><h2>MEALS</h2><p>three</p>")
    anchor = doc.find("h2")
    collected = dom.collect_siblings_until(anchor, dom.matches_selector("h2"))
    assert [dom.text_of(n) for n in collected] == ["one", "loose text", "two"]


def test_contains_match_checks_descendants():
    doc = dom.load("<div><span><strong>MEALS</strong></span></div><div>plain</div>")
    first, second = doc.find_all("div")
    predicate = dom.contains_match(dom.text_equals("meals"))
    assert predicate(first)
    assert not predicate(second)


def test_matches_selector_attribute():
    doc = dom.load('<div style="color:red; font-weight: bold">NAPS</div><div>x</div>')
    bold = dom.matches_selector('div[style*="font-weight: bold"]')
    first, second = doc.find_all("div")
    assert bold(first)
    assert not bold(second)


def test_table_rows_excludes_nested_tables():
    doc = dom.load(
        "<table><tr><td>a</td></tr><tr><td><table><tr><td>inner</td></tr></table></td></tr></table>"
    )
    outer = doc.find("table")
    rows = dom.table_rows(outer)
    assert len(rows) == 2
    assert dom.text_of(rows[0]) == "a"
