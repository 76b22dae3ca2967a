"""Tests for normalize module."""

import pytest

from daycare_sync.exceptions import InvalidDate
from daycare_sync.models import Activity, BathroomEvent, Meal, Nap, ParsedReport, Photo
from daycare_sync.normalize import build_report_payload, format_time, normalize_report_date


# --- Dates ---

@pytest.mark.parametrize("raw, expected", [
    ("May 20, 2025", "2025-05-20"),
    ("Mar 3, 2025", "2025-03-03"),
    ("Tuesday, May 20, 2025", "2025-05-20"),
    ("Tuesday May 20, 2025", "2025-05-20"),
    ("Tue May 20 2025", "2025-05-20"),
    ("June 3rd, 2025", "2025-06-03"),
    ("Sept 5, 2025", "2025-09-05"),
    ("20 May, 2025", "2025-05-20"),
    ("  May   20,\n 2025 ", "2025-05-20"),
    ("05/20/2025", "2025-05-20"),
    ("2025/05/20", "2025-05-20"),
    ("2025-05-20", "2025-05-20"),
])
def test_normalize_report_date(raw, expected):
    assert normalize_report_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "sometime last week", "February 30, 2025"])
def test_normalize_report_date_rejects_unparseable(raw):
    with pytest.raises(InvalidDate):
        normalize_report_date(raw)


@pytest.mark.parametrize("raw", ["May 20", "May 2025", "Tuesday", "2025"])
def test_normalize_report_date_rejects_incomplete_dates(raw):
    with pytest.raises(InvalidDate):
        normalize_report_date(raw)


def test_normalize_report_date_rejects_epoch():
    with pytest.raises(InvalidDate):
        normalize_report_date("January 1, 1970")


# --- Times ---

@pytest.mark.parametrize("raw, expected", [
    ("2:23 PM", "14:23:00"),
    ("14:30", "14:30:00"),
    ("10:01 AM", "10:01:00"),
    ("2:23pm", "14:23:00"),
    ("12:05 a.m.", "00:05:00"),
    ("11:51", "11:51:00"),
])
def test_format_time(raw, expected):
    assert format_time(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "noonish", "25:99"])
def test_format_time_returns_none_when_unparseable(raw):
    assert format_time(raw) is None


# --- Payload ---

def _report() -> ParsedReport:
    return ParsedReport(
        child_name="Emma",
        report_date="March 3, 2025",
        teacher_notes="Great day",
        naps=[Nap("1 hr 30 mins", "12:15 PM", "1:45 PM"), Nap("Rested")],
        meals=[
            Meal("9:00 AM", "Oatmeal", "Oatmeal JD", ["JD"]),
            Meal("11:01 AM", "Rice", "Lunch: Rice", []),
            Meal("later", "Snack"),
        ],
        bathroom_events=[BathroomEvent("2:23 PM", "diaper", "Wet", ["MD"])],
        activities=[
            Activity("Science: Bugs", ["Science"], "Observation"),
            Activity("Sang songs"),
        ],
        photos=[Photo("https://www.tadpoles.com/m/p/a1?thumbnail=true", "Painting")],
    )


def test_build_report_payload_top_level():
    payload = build_report_payload(_report(), "child-1", "2025-03-03", "msg-1")
    assert payload["child_id"] == "child-1"
    assert payload["report_date"] == "2025-03-03"
    assert payload["raw_email_id"] == "msg-1"
    assert payload["teacher_notes"] == "Great day"
    assert payload["parent_notes"] is None


def test_build_report_payload_naps():
    naps = build_report_payload(_report(), "c", "2025-03-03", "m")["naps_data"]
    assert naps[0] == {"start_time": "12:15:00", "end_time": "13:45:00", "duration_text": "1 hr 30 mins"}
    assert naps[1] == {"start_time": None, "end_time": None, "duration_text": "Rested"}


def test_build_report_payload_meals():
    meals = build_report_payload(_report(), "c", "2025-03-03", "m")["meals_data"]
    assert meals[0]["meal_time"] == "2025-03-03 09:00:00"
    assert meals[0]["description"] == "Oatmeal [JD]"
    assert meals[1]["description"] == "Rice (Lunch: Rice)"
    assert meals[2]["meal_time"] is None


def test_build_report_payload_events_activities_photos():
    payload = build_report_payload(_report(), "c", "2025-03-03", "m")
    assert payload["bathroom_events_data"] == [{
        "event_time": "2025-03-03 14:23:00",
        "event_type": "diaper",
        "status": "Wet",
        "initials": ["MD"],
    }]
    assert payload["activities_data"][0]["categories"] == ["Science"]
    assert payload["activities_data"][0]["goals"] == ["Observation"]
    assert payload["activities_data"][1]["categories"] is None
    assert payload["photos_data"] == [{
        "image_url": "https://www.tadpoles.com/m/p/a1?thumbnail=true",
        "thumbnail_url": None,
        "source_domain": "www.tadpoles.com",
        "description": "Painting",
    }]
