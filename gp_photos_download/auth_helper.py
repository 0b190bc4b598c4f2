# OAuth 2.0 token cache and browser-based authorization for Google Photos.
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

# Google API imports
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from .config import DEFAULT_REDIRECT_PORT
from .errors import AuthorizationError

logger = logging.getLogger(__name__)

AUTH_PROMPT = "Go to the following link in your browser to authorize access:\n{url}\n"
AUTH_SUCCESS = "Authorization code received. You can close this window."


class CredentialStore:
    """
    Local JSON cache for the user's OAuth 2.0 token.
    """

    def __init__(self, token_path: str):
        self.token_path = Path(token_path)

    def load(self) -> Optional[Credentials]:
        """
        Load the cached token, if any.

        The token keeps the scopes it was granted with, so callers can tell
        a picker token from a library token.

        Returns:
            Credentials or None when there is no readable token
        """
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path))
        except (ValueError, OSError, json.JSONDecodeError) as e:
            print(f"⚠️  Ignoring unreadable token file {self.token_path}: {e}")
            return None

    def save(self, credentials: Credentials):
        """Write the token so the next run can skip the browser."""
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.token_path, 'w') as token:
            token.write(credentials.to_json())
        logger.debug("Saved token to %s", self.token_path)

    @staticmethod
    def is_usable(credentials: Optional[Credentials], scopes: List[str]) -> bool:
        """A token is usable when present, unexpired and granted for our scopes."""
        if credentials is None or not credentials.valid:
            return False
        if credentials.scopes and not credentials.has_scopes(scopes):
            return False
        return True


def authorize(client_secrets_path: str, scopes: List[str],
              port: int = DEFAULT_REDIRECT_PORT,
              open_browser: bool = False) -> Credentials:
    """
    Run the browser authorization handshake.

    A local listener on localhost:<port> receives the one-shot redirect that
    carries the authorization code, which is then exchanged for a token.

    Args:
        client_secrets_path: OAuth 2.0 client secret JSON (desktop app)
        scopes: Requested scopes
        port: Port of the local callback listener
        open_browser: Open the URL automatically instead of only printing it

    Returns:
        Credentials: Fresh credentials, including a refresh token
    """
    if not os.path.exists(client_secrets_path):
        raise AuthorizationError(f"Client secrets file not found: {client_secrets_path}")

    flow = InstalledAppFlow.from_client_secrets_file(client_secrets_path, scopes)
    print(f"Starting authorization listener on http://localhost:{port}")
    try:
        return flow.run_local_server(port=port,
                                     open_browser=open_browser,
                                     authorization_prompt_message=AUTH_PROMPT,
                                     success_message=AUTH_SUCCESS,
                                     access_type='offline',
                                     prompt='consent')
    except Exception as e:
        raise AuthorizationError(f"Unable to retrieve token from web: {e}") from e


def get_credentials(client_secrets_path: str, token_path: str, scopes: List[str],
                    port: int = DEFAULT_REDIRECT_PORT,
                    open_browser: bool = False) -> Credentials:
    """
    Return credentials for the given scopes, authorizing only when needed.

    Order: cached token, refreshed token, browser authorization.
    """
    store = CredentialStore(token_path)
    creds = store.load()

    if store.is_usable(creds, scopes):
        logger.debug("Using cached token from %s", token_path)
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as e:
            print(f"⚠️  Token refresh failed, authorization required: {e}")
            creds = None
        except GoogleAuthError as e:
            raise AuthorizationError(f"Unable to refresh access token: {e}") from e
        else:
            if store.is_usable(creds, scopes):
                store.save(creds)
                print("🔑 Refreshed access token")
                return creds

    creds = authorize(client_secrets_path, scopes, port=port, open_browser=open_browser)
    store.save(creds)
    print("Successfully authenticated with Google Photos")
    return creds
