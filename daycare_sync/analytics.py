"""Per-child sleep, meal and activity summaries over stored reports.

Meal and activity "types" are word-prefix heuristics (first word of a meal
description, first three words of an activity), not semantic categories.
They are approximations for charting trends and are kept deliberately simple.
"""

import re
from collections import defaultdict
from datetime import date

_HOURS = re.compile(r"(\d+)\s*hr")
_MINUTES = re.compile(r"(\d+)\s*min")

TOP_ACTIVITY_TYPES = 10


def parse_duration_to_minutes(duration_text: str | None) -> int:
    """Parse "1 hr 41 mins" style text into minutes; 0 if nothing matches."""
    if not duration_text:
        return 0
    minutes = 0
    if match := _HOURS.search(duration_text):
        minutes += int(match.group(1)) * 60
    if match := _MINUTES.search(duration_text):
        minutes += int(match.group(1))
    return minutes


def meal_type(description: str | None) -> str:
    """First word of a meal description, or 'Unknown'."""
    text = (description or "").strip()
    return text.split(" ")[0] if text else "Unknown"


def activity_type(description: str | None) -> str:
    """First three words of an activity description, or 'Unknown'."""
    text = (description or "").strip()
    return " ".join(text.split(" ")[:3]) if text else "Unknown"


def aggregate_sleep(reports: list[dict]) -> list[dict]:
    """Total nap minutes per report date.

    Args:
        reports: Reports as returned by database.list_reports (with "naps").

    Returns:
        [{"date": "YYYY-MM-DD", "total_minutes": int}, ...] in report order.
    """
    totals: dict[str, int] = {}
    for report in reports:
        day = report["report_date"]
        totals.setdefault(day, 0)
        for nap in report.get("naps") or []:
            totals[day] += parse_duration_to_minutes(nap.get("duration_text"))
    return [{"date": day, "total_minutes": minutes} for day, minutes in totals.items()]


def aggregate_meals(reports: list[dict]) -> dict:
    """Meals per day and a breakdown of meal types."""
    frequency: dict[str, int] = {}
    breakdown: dict[str, int] = defaultdict(int)
    for report in reports:
        meals = report.get("meals") or []
        day = report["report_date"]
        frequency[day] = frequency.get(day, 0) + len(meals)
        for meal in meals:
            breakdown[meal_type(meal.get("description"))] += 1
    return {
        "frequency": [{"date": day, "count": count} for day, count in frequency.items()],
        "breakdown": [{"name": name, "value": value} for name, value in breakdown.items()],
    }


def aggregate_activities(reports: list[dict]) -> dict:
    """Activities per day, the most common activity types, and a weekday heatmap.

    The breakdown and heatmap only cover the top activity types so every
    weekday row has the same columns.
    """
    frequency: dict[str, int] = {}
    type_counts: dict[str, int] = defaultdict(int)
    by_weekday: dict[str, dict[str, int]] = {}

    for report in reports:
        day = report["report_date"]
        weekday = date.fromisoformat(day).strftime("%A")
        activities = report.get("activities") or []
        frequency[day] = frequency.get(day, 0) + len(activities)
        for activity in activities:
            kind = activity_type(activity.get("description"))
            type_counts[kind] += 1
            counts = by_weekday.setdefault(weekday, {})
            counts[kind] = counts.get(kind, 0) + 1

    top_types = [
        name for name, _ in sorted(type_counts.items(), key=lambda item: item[1], reverse=True)
    ][:TOP_ACTIVITY_TYPES]

    return {
        "frequency": [{"date": day, "count": count} for day, count in frequency.items()],
        "breakdown": [{"name": name, "value": type_counts[name]} for name in top_types],
        "heatmap": [
            {"day": weekday, **{name: counts.get(name, 0) for name in top_types}}
            for weekday, counts in by_weekday.items()
        ],
        "activity_types": top_types,
    }


def summarize_child(reports: list[dict]) -> dict:
    """All three summaries for one child's reports."""
    return {
        "reports": len(reports),
        "sleep": aggregate_sleep(reports),
        "meals": aggregate_meals(reports),
        "activities": aggregate_activities(reports),
    }
