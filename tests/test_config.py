"""Tests for per-user configuration loading."""

from unittest.mock import patch

import config
from config import DEFAULT_USER_ID, load_users


def test_single_default_user_from_flat_settings():
    with patch.object(config.settings, "user_ids", ""), \
            patch.object(config.settings, "gmail_token_json", '{"token": "t"}'), \
            patch.object(config.settings, "gmail_query", "from:@tadpoles.com"):
        users = load_users()

    assert list(users) == [DEFAULT_USER_ID]
    assert users[DEFAULT_USER_ID].gmail_token_json == '{"token": "t"}'
    assert users[DEFAULT_USER_ID].gmail_query == "from:@tadpoles.com"


def test_multiple_users_read_prefixed_vars(monkeypatch):
    monkeypatch.setenv("USER_ALEX_GMAIL_TOKEN_JSON", '{"token": "a"}')
    monkeypatch.setenv("USER_SAM_GMAIL_QUERY", "from:school@tadpoles.com")
    monkeypatch.delenv("USER_ALEX_GMAIL_QUERY", raising=False)

    with patch.object(config.settings, "user_ids", " Alex, sam ,"), \
            patch.object(config.settings, "gmail_query", "from:@tadpoles.com"):
        users = load_users()

    assert list(users) == ["alex", "sam"]
    assert users["alex"].gmail_token_json == '{"token": "a"}'
    assert users["alex"].gmail_query == "from:@tadpoles.com"
    assert users["sam"].gmail_query == "from:school@tadpoles.com"
