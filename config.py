"""Centralized configuration using pydantic-settings."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Gmail OAuth2 (single-user mode)
    gmail_credentials_json: str = ""
    gmail_token_json: str = ""

    # Only mail from the report providers is considered
    gmail_query: str = "from:@tadpoles.com"
    gmail_max_results: int = 25

    # Storage
    db_path: str = "output/daycare.db"

    # Multi-user support (comma-separated user IDs, e.g. "alex,sam")
    user_ids: str = ""

    # Stop starting new messages after this many seconds (0 = no deadline)
    sync_deadline_seconds: float = 0

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()


@dataclass(frozen=True)
class UserConfig:
    """Per-user Gmail account whose inbox receives daily reports."""

    user_id: str
    gmail_credentials_json: str
    gmail_token_json: str
    gmail_query: str


DEFAULT_USER_ID = "default"


def _get_env(key: str, default: str = "") -> str:
    """Get an env var from os.environ first, then .env file."""
    return os.environ.get(key, _dotenv_vars.get(key, default))


# Load .env file values for USER_* vars (pydantic-settings doesn't export
# unknown vars to os.environ, so we read the .env file directly).
_dotenv_vars = dotenv_values(".env")


def load_users() -> dict[str, UserConfig]:
    """Discover users from environment variables.

    When USER_IDS is set (e.g. "alex,sam"), reads USER_{ID}_* env vars for
    each user. When empty, a single "default" user is built from the flat
    GMAIL_* settings.
    """
    user_ids_raw = settings.user_ids.strip()

    if not user_ids_raw:
        return {
            DEFAULT_USER_ID: UserConfig(
                user_id=DEFAULT_USER_ID,
                gmail_credentials_json=settings.gmail_credentials_json,
                gmail_token_json=settings.gmail_token_json,
                gmail_query=settings.gmail_query,
            )
        }

    ids = [s.strip().lower() for s in user_ids_raw.split(",") if s.strip()]
    result: dict[str, UserConfig] = {}

    for uid in ids:
        prefix = f"USER_{uid.upper()}_"
        result[uid] = UserConfig(
            user_id=uid,
            gmail_credentials_json=_get_env(f"{prefix}GMAIL_CREDENTIALS_JSON"),
            gmail_token_json=_get_env(f"{prefix}GMAIL_TOKEN_JSON"),
            gmail_query=_get_env(f"{prefix}GMAIL_QUERY", settings.gmail_query),
        )

    return result


def db_path() -> Path:
    return Path(settings.db_path)


users: dict[str, UserConfig] = load_users()
