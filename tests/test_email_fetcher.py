"""Tests for email_fetcher module."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from config import UserConfig
from daycare_sync.email_fetcher import (
    GmailMessageSource,
    _get_gmail_service,
    _get_header,
    extract_sender_email,
    get_sender,
)
from daycare_sync.exceptions import MessageFetchError


def test_get_header_finds_header():
    headers = [
        {"name": "Subject", "value": "Daily Report"},
        {"name": "From", "value": "reports@tadpoles.com"},
    ]
    assert _get_header(headers, "Subject") == "Daily Report"
    assert _get_header(headers, "from") == "reports@tadpoles.com"


def test_get_header_returns_empty_for_missing():
    assert _get_header([{"name": "Subject", "value": "Test"}], "From") == ""


def test_extract_sender_email_from_display_name():
    assert extract_sender_email('"Tadpoles" <Reports@Tadpoles.com>') == "reports@tadpoles.com"


def test_extract_sender_email_bare_and_missing():
    assert extract_sender_email("noreply+daily@mail.tadpoles.com") == "noreply+daily@mail.tadpoles.com"
    assert extract_sender_email("") == ""
    assert extract_sender_email("Tadpoles") == ""


def test_get_sender_reads_from_header():
    message = {"payload": {"headers": [{"name": "From", "value": "Goddard <school@tadpoles.com>"}]}}
    assert get_sender(message) == "school@tadpoles.com"
    assert get_sender({}) == ""


def test_gmail_service_raises_without_credentials():
    with patch("daycare_sync.email_fetcher.settings") as mock_settings:
        mock_settings.gmail_credentials_json = ""
        mock_settings.gmail_token_json = ""
        with pytest.raises(MessageFetchError, match="not configured"):
            _get_gmail_service()


def test_gmail_service_uses_user_credentials():
    user = UserConfig("alex", gmail_credentials_json="", gmail_token_json="{}", gmail_query="")
    with pytest.raises(MessageFetchError, match="not configured"):
        _get_gmail_service(user)


def _service(pages: list[dict], message: dict | None = None) -> MagicMock:
    service = MagicMock()
    messages = service.users.return_value.messages.return_value
    messages.list.return_value.execute.side_effect = pages
    messages.get.return_value.execute.return_value = message or {}
    return service


def test_list_message_ids_follows_pages_until_limit():
    service = _service([
        {"messages": [{"id": "m1"}, {"id": "m2"}], "nextPageToken": "p2"},
        {"messages": [{"id": "m3"}], "nextPageToken": "p3"},
    ])
    source = GmailMessageSource(service=service)
    ids = asyncio.run(source.list_message_ids("from:@tadpoles.com", 3))
    assert ids == ["m1", "m2", "m3"]

    calls = service.users.return_value.messages.return_value.list.call_args_list
    assert calls[0].kwargs["q"] == "from:@tadpoles.com"
    assert calls[0].kwargs["maxResults"] == 3
    assert calls[1].kwargs["pageToken"] == "p2"
    assert calls[1].kwargs["maxResults"] == 1


def test_list_message_ids_empty_inbox():
    source = GmailMessageSource(service=_service([{"resultSizeEstimate": 0}]))
    assert asyncio.run(source.list_message_ids("from:@tadpoles.com", 10)) == []


def test_get_message_requests_full_format():
    service = _service([], message={"id": "m1", "payload": {}})
    source = GmailMessageSource(service=service)
    assert asyncio.run(source.get_message("m1")) == {"id": "m1", "payload": {}}
    get = service.users.return_value.messages.return_value.get
    assert get.call_args.kwargs == {"userId": "me", "id": "m1", "format": "full"}


def test_api_errors_become_message_fetch_errors():
    service = MagicMock()
    service.users.return_value.messages.return_value.get.return_value.execute.side_effect = (
        RuntimeError("quota exceeded")
    )
    source = GmailMessageSource(service=service)
    with pytest.raises(MessageFetchError, match="quota exceeded"):
        asyncio.run(source.get_message("m1"))
