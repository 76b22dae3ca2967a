"""Gmail API integration: list and fetch daily report emails."""

import asyncio
import json
import logging
import re

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from config import UserConfig, settings
from daycare_sync.exceptions import MessageFetchError

logger = logging.getLogger(__name__)

_EMAIL_ADDRESS = re.compile(r"[\w.+-]+@[\w.-]+\.\w+")

# Gmail caps a single list page at 500 ids
_MAX_PAGE_SIZE = 500


def _get_gmail_service(user: UserConfig | None = None):
    """Build and return an authenticated Gmail API service."""
    creds_json = user.gmail_credentials_json if user else settings.gmail_credentials_json
    token_json = user.gmail_token_json if user else settings.gmail_token_json

    if not creds_json or not token_json:
        raise MessageFetchError("Gmail credentials or token not configured.")

    try:
        token_data = json.loads(token_json)
        creds = Credentials.from_authorized_user_info(token_data)

        if creds.expired and creds.refresh_token:
            creds.refresh(Request())

        return build("gmail", "v1", credentials=creds)
    except Exception as e:
        raise MessageFetchError(f"Failed to authenticate with Gmail: {e}") from e


def _get_header(headers: list[dict], name: str) -> str:
    """Get a header value by name from Gmail message headers."""
    for header in headers:
        if header.get("name", "").lower() == name.lower():
            return header.get("value", "")
    return ""


def extract_sender_email(from_header: str) -> str:
    """Pull the bare, lowercased address out of a From header.

    '"Tadpoles" <Reports@Tadpoles.com>' -> 'reports@tadpoles.com'
    """
    match = _EMAIL_ADDRESS.search(from_header or "")
    return match.group(0).lower() if match else ""


def get_sender(message: dict) -> str:
    """Sender address of a Gmail message resource, or '' if absent."""
    headers = message.get("payload", {}).get("headers", [])
    return extract_sender_email(_get_header(headers, "From"))


class GmailMessageSource:
    """Read-only message source backed by one user's Gmail inbox.

    The Gmail client is blocking, so every call runs in a worker thread.
    """

    def __init__(self, service=None, user: UserConfig | None = None):
        self._service = service
        self._user = user

    @property
    def service(self):
        if self._service is None:
            self._service = _get_gmail_service(self._user)
        return self._service

    def _list_ids(self, query: str, max_results: int) -> list[str]:
        ids: list[str] = []
        page_token = None
        while len(ids) < max_results:
            result = (
                self.service.users()
                .messages()
                .list(
                    userId="me",
                    q=query,
                    maxResults=min(max_results - len(ids), _MAX_PAGE_SIZE),
                    pageToken=page_token,
                )
                .execute()
            )
            ids.extend(ref["id"] for ref in result.get("messages", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break
        return ids[:max_results]

    def _get(self, message_id: str) -> dict:
        return (
            self.service.users()
            .messages()
            .get(userId="me", id=message_id, format="full")
            .execute()
        )

    async def list_message_ids(self, query: str, max_results: int) -> list[str]:
        """Ids of candidate report emails matching a Gmail search query."""
        logger.info("Querying Gmail: %s (max %d)", query, max_results)
        try:
            ids = await asyncio.to_thread(self._list_ids, query, max_results)
        except MessageFetchError:
            raise
        except Exception as e:
            raise MessageFetchError(f"Failed to list messages: {e}") from e
        logger.info("Found %d candidate messages", len(ids))
        return ids

    async def get_message(self, message_id: str) -> dict:
        """Full Gmail message resource (headers and MIME part tree)."""
        try:
            return await asyncio.to_thread(self._get, message_id)
        except MessageFetchError:
            raise
        except Exception as e:
            raise MessageFetchError(f"Failed to fetch message {message_id}: {e}") from e
