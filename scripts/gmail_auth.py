"""Gmail OAuth2 helper: authorize read-only access to a parent's inbox.

Usage:
    python scripts/gmail_auth.py [user_id]

    user_id: optional, e.g. "alex". When USER_IDS is configured, defaults
             to the first user.

Prints a consent URL. After granting access the browser is sent to a
localhost URL that won't load; paste that full URL back here. The token is
written to .env as GMAIL_TOKEN_JSON (or USER_{ID}_GMAIL_TOKEN_JSON).
"""

import json
import re
import sys
import tempfile
from pathlib import Path
from urllib.parse import parse_qs, urlparse

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from config import DEFAULT_USER_ID, users

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

ENV_PATH = Path(__file__).resolve().parent.parent / ".env"


def _token_env_key(user_id: str) -> str:
    if user_id == DEFAULT_USER_ID:
        return "GMAIL_TOKEN_JSON"
    return f"USER_{user_id.upper()}_GMAIL_TOKEN_JSON"


def _authorization_code(redirect_url: str) -> str | None:
    params = parse_qs(urlparse(redirect_url).query)
    return params["code"][0] if "code" in params else None


def _write_env_value(env_path: Path, key: str, value: str) -> None:
    """Replace key's line in the .env file, or append it."""
    content = env_path.read_text() if env_path.exists() else ""
    pattern = re.compile(rf"^{re.escape(key)}=.*$", re.MULTILINE)
    if pattern.search(content):
        content = pattern.sub(lambda _: f"{key}={value}", content)
    else:
        content += f"\n{key}={value}\n"
    env_path.write_text(content)


def main():
    user_id = sys.argv[1].lower() if len(sys.argv) > 1 else next(iter(users))
    user = users.get(user_id)
    if user is None:
        print(f"ERROR: User '{user_id}' is not configured ({', '.join(users)})")
        sys.exit(1)
    if not user.gmail_credentials_json:
        print(f"ERROR: No Gmail credentials found for user '{user_id}'")
        sys.exit(1)

    with tempfile.NamedTemporaryFile("w", suffix=".json") as client_secrets:
        client_secrets.write(user.gmail_credentials_json)
        client_secrets.flush()
        flow = InstalledAppFlow.from_client_secrets_file(
            client_secrets.name, SCOPES, redirect_uri="http://localhost"
        )

    auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")

    print()
    print(f"GMAIL AUTHORIZATION for user: {user_id}")
    print()
    print("1. Open this URL in your browser and grant read-only access:")
    print()
    print(auth_url)
    print()
    print("2. Copy the FULL localhost URL you are redirected to and paste it below.")
    print()

    code = _authorization_code(input("Paste URL here: ").strip())
    if not code:
        print("ERROR: No authorization code found in the URL (expected ?code=...).")
        sys.exit(1)

    flow.fetch_token(code=code)
    creds = flow.credentials
    token_data = {
        "token": creds.token,
        "refresh_token": creds.refresh_token,
        "token_uri": creds.token_uri,
        "client_id": creds.client_id,
        "client_secret": creds.client_secret,
        "scopes": list(creds.scopes),
    }

    key = _token_env_key(user_id)
    _write_env_value(ENV_PATH, key, json.dumps(token_data))
    print(f"{key} has been updated in .env")

    print("Verifying token...")
    check = Credentials.from_authorized_user_info(token_data)
    if check.expired and check.refresh_token:
        check.refresh(Request())
    print("Token is valid! Report sync can read this inbox.")


if __name__ == "__main__":
    main()
