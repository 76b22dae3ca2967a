"""Tests for html_extractor module."""

import base64

import pytest

from daycare_sync.exceptions import DecodeError
from daycare_sync.html_extractor import base64url_decode, extract_html, find_html_part


def _b64url(text: str) -> str:
    """Gmail-style encoding: URL-safe alphabet, padding stripped."""
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def test_base64url_decode_restores_padding():
    assert base64url_decode(_b64url("<p>Hi</p>")) == "<p>Hi</p>"


def test_base64url_decode_handles_url_safe_alphabet():
    text = "??>>~~ report"
    encoded = _b64url(text)
    assert "-" in encoded or "_" in encoded
    assert base64url_decode(encoded) == text


def test_base64url_decode_rejects_impossible_length():
    with pytest.raises(DecodeError):
        base64url_decode("abcde")


def test_base64url_decode_rejects_invalid_characters():
    with pytest.raises(DecodeError):
        base64url_decode("ab!d")


def test_extract_html_prefers_top_level_html():
    payload = {
        "mimeType": "text/html",
        "body": {"data": _b64url("<p>top</p>")},
        "parts": [{"mimeType": "text/html", "body": {"data": _b64url("<p>nested</p>")}}],
    }
    assert extract_html(payload) == "<p>top</p>"


def test_extract_html_searches_nested_parts():
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            {"mimeType": "text/plain", "body": {"data": _b64url("plain")}},
            {
                "mimeType": "multipart/alternative",
                "parts": [
                    {"mimeType": "text/html", "body": {"size": 0}},
                    {"mimeType": "text/html", "body": {"data": _b64url("<p>report</p>")}},
                ],
            },
        ],
    }
    assert extract_html(payload) == "<p>report</p>"


def test_extract_html_returns_empty_without_html_part():
    payload = {
        "mimeType": "multipart/alternative",
        "parts": [{"mimeType": "text/plain", "body": {"data": _b64url("plain")}}],
    }
    assert extract_html(payload) == ""


def test_find_html_part_none_for_empty_parts():
    assert find_html_part(None) is None
    assert find_html_part([]) is None
