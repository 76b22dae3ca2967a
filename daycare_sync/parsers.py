"""Parser strategies for daycare daily report email templates.

Each strategy targets one provider's HTML template. The templates look alike
when rendered but are different documents underneath, so every strategy owns
its anchors and row grammar; only line-level grammars and the header lookup
are shared.

Usage:
    parser = PARSERS[ParserStrategy.TADPOLES_V1]
    report = parser(html, log)   # ParsedReport, or None if unusable
"""

import logging
import re
from collections.abc import Callable
from enum import StrEnum

from bs4 import Tag

from daycare_sync import dom
from daycare_sync.models import Activity, BathroomEvent, Meal, Nap, ParsedReport, Photo

logger = logging.getLogger(__name__)


class ParserStrategy(StrEnum):
    """Known report templates, keyed by the strategy id stored on a binding."""

    TADPOLES_V1 = "tadpoles_v1"
    GODDARD_TADPOLES_V1 = "goddard_tadpoles_v1"
    MONTESSORI_V1 = "montessori_v1"


Log = logging.Logger | logging.LoggerAdapter
ReportParser = Callable[[str, Log], ParsedReport | None]

# Registry of strategy -> parser function
PARSERS: dict[ParserStrategy, ReportParser] = {}


def register_parser(strategy: ParserStrategy):
    """Decorator to register a parser for a strategy id."""
    def decorator(func: ReportParser) -> ReportParser:
        PARSERS[strategy] = func
        return func
    return decorator


# --- Shared vocabulary and line grammars ---

REPORT_MARKER = "DAILY REPORT -"
TEACHER_NOTES = "TODAY'S TEACHER NOTES"
NAPS = "NAPS"
MEALS = "MEALS"
BATHROOM = "BATHROOM"
ACTIVITIES = "ACTIVITIES"
SNAPSHOTS = "SNAPSHOTS"
PARENT_NOTES = "PARENT NOTES"

# Section titles that end the previous section even without heading markup
SECTION_TITLES = [TEACHER_NOTES, NAPS, MEALS, BATHROOM, ACTIVITIES, SNAPSHOTS, PARENT_NOTES]

TIME = r"\d{1,2}:\d{2}(?:\s*[AaPp]\.?[Mm]\.?)?"

REPORT_DATE = re.compile(r"DAILY REPORT\s*-\s*(.*)", re.IGNORECASE)
NAP_LINE = re.compile(
    rf"slept for (?P<duration>.*?) from (?P<start>{TIME}) to (?P<end>{TIME})", re.IGNORECASE,
)
# "<time> - <rest>" anywhere in the line; text before the time is a meal label:
# "Lunch @ 11:01 AM - ...", "Breakfast: 8:00 AM - ...", "Lunch 11:01 AM - ..."
TIMED_LINE = re.compile(rf"(?<![\d:])(?P<time>{TIME})\s*-\s*(?P<rest>.*)$")
BATHROOM_DETAIL = re.compile(r"^(?P<type>diaper|potty|toilet)\s*-\s*(?P<status>.*)$", re.IGNORECASE)
# Staff initials trail the description: "Oatmeal JD,KL"
TRAILING_INITIALS = re.compile(r"\s+(?P<initials>[A-Z]{1,4}(?:\s*,\s*[A-Z]{1,4})*)\s*,?$")
GOALS_SPLIT = re.compile(r"\s*-\s*Goals:\s*", re.IGNORECASE)


def split_initials(text: str) -> tuple[str, list[str]]:
    """Strip trailing all-caps staff initials from a description."""
    match = TRAILING_INITIALS.search(text)
    if not match:
        return text, []
    return text[:match.start()].strip(), parse_initials(match.group("initials"))


def parse_initials(text: str) -> list[str]:
    """Split a comma-separated initials string ("MD, Elena.") into names."""
    return [part.strip().rstrip(".") for part in text.split(",") if part.strip().rstrip(".")]


def parse_nap(line: str) -> Nap:
    match = NAP_LINE.search(line)
    if not match:
        return Nap(duration_text=line)
    return Nap(
        duration_text=match.group("duration").strip() or None,
        start_time=match.group("start").strip(),
        end_time=match.group("end").strip(),
    )


def parse_meal(line: str, initials: list[str] | None = None) -> Meal | None:
    match = TIMED_LINE.search(line)
    if not match:
        return None
    rest = match.group("rest").strip()
    food, inline_initials = split_initials(rest)
    label = line[:match.start()].strip(" \t@:-")
    return Meal(
        time=match.group("time").strip(),
        food=food,
        details=f"{label}: {food}" if label else rest,
        initials=initials if initials else inline_initials,
    )


def parse_bathroom(line: str, initials: list[str] | None = None) -> BathroomEvent | None:
    match = TIMED_LINE.search(line)
    if not match:
        return None
    detail = BATHROOM_DETAIL.match(match.group("rest").strip())
    if not detail:
        return None
    status, inline_initials = split_initials(detail.group("status").strip())
    return BathroomEvent(
        time=match.group("time").strip(),
        type=detail.group("type").lower(),
        status=status,
        initials=initials if initials else inline_initials,
    )


def split_goals(text: str) -> tuple[str, str | None]:
    """Split "description - Goals: a, b" into ("description", "a, b")."""
    parts = GOALS_SPLIT.split(text, maxsplit=1)
    if len(parts) == 1:
        return text, None
    return parts[0].strip(), parts[1].strip() or None


def _add_photo(photos: list[Photo], src: str | None, description: str) -> None:
    if src and not any(p.src == src for p in photos):
        photos.append(Photo(src=src, description=description))


def find_report_header(root: Tag) -> tuple[Tag | None, str]:
    """Locate the "DAILY REPORT - <date>" element and the raw date after the marker.

    When the marker sits alone in an inline tag, the date is read from the
    enclosing element instead.
    """
    header = dom.find_first(root, dom.contains_text(REPORT_MARKER))
    if header is None:
        return None, ""
    for node in (header, header.parent):
        if node is None:
            break
        match = REPORT_DATE.search(dom.text_of(node))
        if match and match.group(1).strip():
            return header, match.group(1).strip()
    return header, ""


def _previous_sibling_text(header: Tag) -> str:
    """Child name rule for templates that print the name right before the header."""
    name = dom.text_of(header.find_previous_sibling())
    if not name and header.parent is not None:
        name = dom.text_of(header.parent.find_previous_sibling())
    return name


def _finish(report: ParsedReport, log: Log) -> ParsedReport | None:
    """Critical-field gate: a report without child name and date is unusable."""
    if not report.child_name or not report.report_date:
        log.warning(
            "Parsed report is missing critical fields (child_name=%r, report_date=%r)",
            report.child_name, report.report_date,
        )
        return None
    log.debug(
        "Parsed report: %d naps, %d meals, %d bathroom, %d activities, %d photos",
        len(report.naps), len(report.meals), len(report.bathroom_events),
        len(report.activities), len(report.photos),
    )
    return report


# --- Tadpoles (generic template) ---

# Lightweight inline-styled tags this template uses for section titles
TADPOLES_HEADINGS = (
    'h1, h2, h3, h4, h5, h6, strong, b, p > font[size="+1"], '
    'div[style*="font-weight: bold"]'
)

_is_section_title = dom.contains_match(dom.text_equals(*SECTION_TITLES))
_tadpoles_stop = dom.any_of(
    dom.contains_match(dom.matches_selector(TADPOLES_HEADINGS)),
    _is_section_title,
)


def _tadpoles_lines(anchor: Tag, stop: dom.Predicate = _tadpoles_stop) -> list[str]:
    lines = [dom.text_of(node) for node in dom.collect_siblings_until(anchor, stop)]
    return [line for line in lines if line]


def _tadpoles_photos(anchor: Tag, photos: list[Photo]) -> None:
    for node in dom.collect_siblings_until(anchor, _tadpoles_stop):
        if not isinstance(node, Tag):
            continue
        images = [node] if node.name == "img" else node.find_all("img")
        for img in images:
            caption = (img.get("alt") or "").strip()
            if not caption:
                caption = dom.text_of(img.find_next_sibling())
            if not caption and img.parent is not node.parent:
                caption = dom.text_of(img.parent.find_next_sibling())
            _add_photo(photos, img.get("src"), caption)


@register_parser(ParserStrategy.TADPOLES_V1)
def parse_tadpoles_report(html: str, log: Log = logger) -> ParsedReport | None:
    """Parse the generic Tadpoles daily report template.

    Section titles are bold/heading tags; each section's lines are the
    sibling elements that follow the title. The child's name is printed in
    the element just before the "DAILY REPORT - <date>" header.
    """
    doc = dom.load(html)
    root = doc.body or doc

    header, report_date = find_report_header(root)
    if header is None:
        log.warning("Could not find '%s' header", REPORT_MARKER)
        return None
    report = ParsedReport(child_name=_previous_sibling_text(header), report_date=report_date)

    anchors = {title: dom.find_first(root, dom.text_equals(title)) for title in SECTION_TITLES}
    for title, anchor in anchors.items():
        if anchor is None:
            log.debug("%s section not found", title)

    if anchors[TEACHER_NOTES] is not None:
        report.teacher_notes = "\n".join(_tadpoles_lines(anchors[TEACHER_NOTES]))

    if anchors[NAPS] is not None:
        report.naps = [parse_nap(line) for line in _tadpoles_lines(anchors[NAPS])]

    if anchors[MEALS] is not None:
        for line in _tadpoles_lines(anchors[MEALS]):
            meal = parse_meal(line)
            if meal:
                report.meals.append(meal)
            else:
                log.debug("Unrecognized meal line: %s", line)

    if anchors[BATHROOM] is not None:
        for line in _tadpoles_lines(anchors[BATHROOM]):
            event = parse_bathroom(line)
            if event:
                report.bathroom_events.append(event)
            else:
                log.debug("Unrecognized bathroom line: %s", line)

    if anchors[ACTIVITIES] is not None:
        # Activity blocks may use bold titles, so only section titles end the walk
        for line in _tadpoles_lines(anchors[ACTIVITIES], stop=_is_section_title):
            upper = line.upper()
            if upper.startswith("WEEKLY THEME:") or upper.startswith("GOALS:"):
                continue
            description, goals = split_goals(line)
            if description:
                report.activities.append(Activity(description=description, goals=goals))

    if anchors[SNAPSHOTS] is not None:
        _tadpoles_photos(anchors[SNAPSHOTS], report.photos)

    return _finish(report, log)


# --- Goddard (branded Tadpoles template) ---

_goddard_stop = dom.contains_match(lambda node: node.name in ("h2", "h3"))


def _goddard_heading(title: str) -> dom.Predicate:
    return lambda node: node.name in ("h2", "h3") and dom.heading_text(node) == title


def _goddard_rows(anchor: Tag) -> list[Tag]:
    """Rows of the sub-table that follows a Goddard section heading."""
    rows: list[Tag] = []
    for node in dom.collect_siblings_until(anchor, _goddard_stop):
        if not isinstance(node, Tag):
            continue
        table = node if node.name == "table" else node.find("table")
        if table is not None:
            rows.extend(dom.table_rows(table))
    return rows


def _cells(row: Tag) -> list[Tag]:
    return row.find_all("td", recursive=False)


def _lead_and_rest(cell: Tag) -> tuple[str, str]:
    """Split a cell into its first span's text and whatever text follows it."""
    full = dom.text_of(cell)
    lead = dom.text_of(cell.find("span"))
    if lead and full.startswith(lead):
        return lead, full[len(lead):].strip()
    return full, ""


def _goddard_notes(anchor: Tag) -> list[str]:
    lines: list[str] = []
    items: list[str] = []
    for row in _goddard_rows(anchor):
        nested = row.find("table")
        if nested is not None:
            for item_row in dom.table_rows(nested):
                cells = [dom.text_of(cell) for cell in _cells(item_row)]
                item = " ".join(text for text in cells if text and text != "•")
                if item:
                    items.append(item)
            continue
        text = dom.text_of(row)
        if text and not text.lower().startswith("please bring in"):
            lines.append(text)
    if items:
        lines.append(f"Please bring in: {', '.join(items)}")
    return lines


def _goddard_activity(row: Tag, report: ParsedReport, notes: list[str]) -> None:
    cells = _cells(row)
    if not cells:
        return
    title, body = _lead_and_rest(cells[0])
    if title.upper().startswith("WEEKLY THEME:") and not body:
        notes.append(title)
        return

    # Goddard keeps the goals in the printed description and also exposes them separately
    _, goals = split_goals(body)
    description = f"{title}: {body}" if title and body else (title or body)
    if description:
        report.activities.append(Activity(
            description=description,
            categories=[c.strip() for c in title.split(",") if c.strip()],
            goals=goals,
        ))

    for cell in cells[1:]:
        for img in cell.find_all("img"):
            _add_photo(report.photos, img.get("src"), (img.get("alt") or "").strip() or title)


def _goddard_snapshot(row: Tag, photos: list[Photo]) -> None:
    cells = _cells(row)
    img = row.find("img")
    if img is None:
        return
    caption = (img.get("alt") or "").strip()
    if not caption and len(cells) > 1:
        title, rest = _lead_and_rest(cells[1])
        if not rest:
            caption = title
        elif rest.startswith("-"):
            caption = f"{title} {rest}"
        else:
            caption = f"{title} - {rest}"
    _add_photo(photos, img.get("src"), caption)


@register_parser(ParserStrategy.GODDARD_TADPOLES_V1)
def parse_goddard_report(html: str, log: Log = logger) -> ParsedReport | None:
    """Parse the Goddard School report delivered through Tadpoles.

    The child's name is the large h1 heading. Sections are colored h2
    headings, each followed by its own table with one row per entry; staff
    initials sit in a separate element of the row rather than inline.
    Teacher notes gather the free-text notes, the items-to-bring list and
    the weekly theme printed in the activities section.
    """
    doc = dom.load(html)
    root = doc.body or doc

    header, report_date = find_report_header(root)
    if header is None:
        log.warning("Could not find '%s' header", REPORT_MARKER)
        return None

    name_heading = next(
        (h for h in root.find_all("h1") if REPORT_MARKER.upper() not in dom.text_of(h).upper()),
        None,
    )
    child_name = dom.text_of(name_heading) if name_heading else _previous_sibling_text(header)
    report = ParsedReport(child_name=child_name, report_date=report_date)

    notes: list[str] = []
    anchor = dom.find_first(root, _goddard_heading(TEACHER_NOTES))
    if anchor is not None:
        notes.extend(_goddard_notes(anchor))
    else:
        log.debug("Teacher notes section not found")

    anchor = dom.find_first(root, _goddard_heading(NAPS))
    for row in _goddard_rows(anchor) if anchor else []:
        if not _cells(row):
            continue
        lead, _ = _lead_and_rest(_cells(row)[0])
        if lead:
            report.naps.append(parse_nap(lead))

    anchor = dom.find_first(root, _goddard_heading(MEALS))
    for row in _goddard_rows(anchor) if anchor else []:
        if not _cells(row):
            continue
        lead, rest = _lead_and_rest(_cells(row)[0])
        meal = parse_meal(lead, parse_initials(rest))
        if meal:
            report.meals.append(meal)
        elif lead:
            log.debug("Unrecognized meal line: %s", lead)

    anchor = dom.find_first(root, _goddard_heading(BATHROOM))
    for row in _goddard_rows(anchor) if anchor else []:
        if not _cells(row):
            continue
        lead, rest = _lead_and_rest(_cells(row)[0])
        event = parse_bathroom(lead, parse_initials(rest))
        if event:
            report.bathroom_events.append(event)
        elif lead:
            log.debug("Unrecognized bathroom line: %s", lead)

    anchor = dom.find_first(root, _goddard_heading(ACTIVITIES))
    for row in _goddard_rows(anchor) if anchor else []:
        _goddard_activity(row, report, notes)

    anchor = dom.find_first(root, _goddard_heading(SNAPSHOTS))
    for row in _goddard_rows(anchor) if anchor else []:
        _goddard_snapshot(row, report.photos)

    report.teacher_notes = "\n".join(notes)
    return _finish(report, log)


# --- Montessori ---

@register_parser(ParserStrategy.MONTESSORI_V1)
def parse_montessori_report(html: str, log: Log = logger) -> ParsedReport | None:
    """Placeholder for the Montessori template; always returns None."""
    log.warning("Montessori report parser is not implemented yet; skipping message")
    return None
