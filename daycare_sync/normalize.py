"""Normalize free-text report fields into calendar values and the store payload."""

import logging
import re
from datetime import date, datetime
from urllib.parse import urlparse

from dateutil import parser as date_parser

from daycare_sync.exceptions import InvalidDate
from daycare_sync.models import ParsedReport

logger = logging.getLogger(__name__)

TIME_FORMATS = [
    "%I:%M %p",
    "%I:%M:%S %p",
    "%H:%M",
    "%H:%M:%S",
]

# Anything at or before the Unix epoch is a parse artifact, not a report date
MIN_REPORT_DATE = date(1970, 1, 2)

# Two defaults that differ in every date field; a field the text omits shows up as a mismatch
_DEFAULTS = (datetime(2000, 1, 1), datetime(2004, 12, 28))

_MERIDIEM = re.compile(r"\s*([AP])\.?\s*M\.?$", re.IGNORECASE)
_ORDINAL = re.compile(r"(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)


def normalize_report_date(raw: str) -> str:
    """Convert a printed report date to an ISO calendar date (YYYY-MM-DD).

    The text is parsed twice against different default dates; if the
    results disagree, a year, month or day was missing from the text and
    the date is rejected rather than filled in.

    Raises:
        InvalidDate: If the text is not a complete calendar date, or the
            result is an epoch-like placeholder date.
    """
    text = _ORDINAL.sub(r"\1", " ".join((raw or "").split()))
    try:
        parsed = {date_parser.parse(text, default=default).date() for default in _DEFAULTS}
    except (ValueError, OverflowError) as e:
        raise InvalidDate(f"Invalid report date: {raw}") from e
    if len(parsed) != 1:
        raise InvalidDate(f"Incomplete report date: {raw}")
    report_date = parsed.pop()
    if report_date < MIN_REPORT_DATE:
        raise InvalidDate(f"Invalid report date: {raw}")
    return report_date.isoformat()


def format_time(time_str: str | None) -> str | None:
    """Convert a printed time ("10:01 AM", "2:23pm", "14:30") to "HH:MM:SS".

    Returns None, never raises, when the time cannot be parsed.
    """
    if not time_str:
        return None

    text = _MERIDIEM.sub(lambda m: f" {m.group(1).upper()}M", time_str.strip())
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%H:%M:%S")
        except ValueError:
            continue

    logger.warning("Could not parse time string: %s", time_str)
    return None


def _timestamp(report_date: str, time_str: str | None) -> str | None:
    """Join the report date with a formatted time, or None if the time is unusable."""
    formatted = format_time(time_str)
    return f"{report_date} {formatted}" if formatted else None


def _meal_description(food: str, details: str, initials: list[str]) -> str:
    description = food
    if details and details != food and not details.startswith(food):
        description += f" ({details})"
    if initials:
        description += f" [{', '.join(initials)}]"
    return description.strip()


def _source_domain(url: str) -> str | None:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def build_report_payload(
    report: ParsedReport, child_id: str, report_date: str, raw_email_id: str,
) -> dict:
    """Assemble the single nested payload written to the report store.

    Args:
        report: The parsed report.
        child_id: Resolved child id.
        report_date: ISO date from normalize_report_date.
        raw_email_id: Source message id (the dedup key).
    """
    return {
        "child_id": child_id,
        "report_date": report_date,
        "teacher_notes": report.teacher_notes,
        "parent_notes": None,
        "raw_email_id": raw_email_id,
        "naps_data": [
            {
                "start_time": format_time(nap.start_time),
                "end_time": format_time(nap.end_time),
                "duration_text": nap.duration_text,
            }
            for nap in report.naps
        ],
        "meals_data": [
            {
                "meal_time": _timestamp(report_date, meal.time),
                "description": _meal_description(meal.food, meal.details, meal.initials),
                "amount": None,
            }
            for meal in report.meals
        ],
        "bathroom_events_data": [
            {
                "event_time": _timestamp(report_date, event.time),
                "event_type": event.type,
                "status": event.status,
                "initials": list(event.initials),
            }
            for event in report.bathroom_events
        ],
        "activities_data": [
            {
                "activity_time": None,
                "description": activity.description,
                "categories": list(activity.categories) or None,
                "goals": [activity.goals] if activity.goals else None,
            }
            for activity in report.activities
        ],
        "photos_data": [
            {
                "image_url": photo.src,
                "thumbnail_url": None,
                "source_domain": _source_domain(photo.src),
                "description": photo.description,
            }
            for photo in report.photos
        ],
    }
