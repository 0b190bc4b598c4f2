# Google Photos Picker API workflow using sessions.
import logging
import re
import secrets
import time
import webbrowser
from typing import Callable, Dict, Iterator, List, Optional

import requests

# Google API imports
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TIMEOUT, PAGE_SIZE, PICKER_API_BASE
from .download_helper import DownloadSummary, MediaDownloader, MediaReference
from .errors import PhotosApiError, PickerTimeoutError

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d*)?)s\s*$')


def parse_duration(value, default: float) -> float:
    """
    Parse a protobuf Duration string such as '5s' or '1799.5s' into seconds.
    Missing or malformed values fall back to the default.
    """
    if value in (None, ''):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        logger.warning("Unrecognized duration %r, using %ss", value, default)
        return default
    return float(match.group(1))


class GooglePhotosPickerAPI:
    """
    Google Photos Picker API client for creating sessions and retrieving selected photos.
    """

    def __init__(self, credentials, session: Optional[requests.Session] = None, service=None):
        """
        Args:
            credentials: Authorized google.oauth2 credentials for the picker scope
            session: HTTP session for session endpoints and media bytes
            service: Discovery client for 'photospicker' v1 (built if omitted)
        """
        self.credentials = credentials
        self.session = session if session is not None else AuthorizedSession(credentials)
        if service is None:
            service = build('photospicker', 'v1', credentials=credentials, static_discovery=False)
        self.service = service

    @staticmethod
    def generate_request_id() -> str:
        """
        Generate a UUID v4 string for request ID in the required format:
        xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx (8-4-4-4-12)
        """
        hex_string = secrets.token_hex(16)
        # Version nibble 4, variant bits 10xx
        hex_string = hex_string[:12] + '4' + hex_string[13:16] + \
            '89ab'[int(hex_string[16], 16) & 3] + hex_string[17:]
        return f"{hex_string[0:8]}-{hex_string[8:12]}-{hex_string[12:16]}-{hex_string[16:20]}-{hex_string[20:32]}"

    def _request(self, method: str, path: str, action: str, **kwargs) -> Dict:
        url = f"{PICKER_API_BASE}/{path}"
        logger.debug("%s %s %s", method, url, kwargs.get('params', ''))
        try:
            response = self.session.request(method, url, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise PhotosApiError.from_http_error(action, e) from e
        except requests.RequestException as e:
            raise PhotosApiError(f"{action} failed: {e}") from e
        except GoogleAuthError as e:
            raise PhotosApiError(f"{action} failed, authorization error: {e}") from e
        if not response.content:
            return {}
        return response.json()

    def create_picking_session(self, max_items: Optional[int] = None) -> Dict:
        """
        Create a new picking session for photo selection.

        Args:
            max_items: Optional cap on how many items the user may pick

        Returns:
            Dict: Session information including id, pickerUri and pollingConfig
        """
        # Lets the picker offer the streamlined flow for limited-input devices
        params = {'requestId': self.generate_request_id()}

        body = {}
        if max_items:
            # int64 fields travel as strings
            body['pickingConfig'] = {'maxItemCount': str(max_items)}

        session_data = self._request('POST', 'sessions', 'Creating picking session',
                                     params=params, json=body)

        print("Successfully created Picking Session")
        print(f"✅ Session Id: {session_data.get('id', 'unknown')}")
        print(f"⏰ Expires at: {session_data.get('expireTime', 'Unknown')}")
        return session_data

    def get_session_status(self, session_id: str) -> Dict:
        """Get the current status of a picking session."""
        return self._request('GET', f"sessions/{session_id}", 'Getting session status')

    def poll_session_until_complete(self, session_data: Dict,
                                    poll_interval: Optional[float] = None,
                                    timeout: Optional[float] = None,
                                    sleep: Callable[[float], None] = time.sleep,
                                    clock: Callable[[], float] = time.monotonic) -> Dict:
        """
        Poll a session until the user completes photo selection or timeout occurs.

        The interval and timeout come from the session's pollingConfig unless
        overridden by the caller.

        Args:
            session_data: Session as returned by create_picking_session
            poll_interval: Seconds between polling requests
            timeout: Seconds to wait for the user before giving up

        Returns:
            Dict: Final session data with mediaItemsSet true

        Raises:
            PickerTimeoutError: The user did not finish in time
        """
        session_id = session_data['id']
        start_time = clock()
        limit = timeout if timeout is not None else \
            parse_duration(session_data.get('pollingConfig', {}).get('timeoutIn'), DEFAULT_POLL_TIMEOUT)
        print(f"🔄 Polling session {session_id} (timeout {limit:.0f}s)")

        while True:
            session_data = self.get_session_status(session_id)
            media_items_set = session_data.get('mediaItemsSet', False)
            logger.debug("Session %s: mediaItemsSet=%s", session_id, media_items_set)

            if media_items_set:
                print("✅ User has completed photo selection!")
                return session_data

            # The server may adjust the interval between polls
            interval = poll_interval if poll_interval is not None else \
                parse_duration(session_data.get('pollingConfig', {}).get('pollInterval'),
                               DEFAULT_POLL_INTERVAL)
            remaining = limit - (clock() - start_time)
            if remaining <= 0:
                raise PickerTimeoutError(
                    f"Polling timeout after {limit:.0f}s, session {session_id} not completed")

            wait = min(interval, remaining)
            print(f"⏳ Waiting {wait:g}s before next poll...")
            sleep(wait)

    def iter_selected_media_items(self, session_id: str) -> Iterator[Dict]:
        """Yield the media items selected in a session, page by page, in server order."""
        page_token = None
        page = 0
        while True:
            request_params = {'sessionId': session_id, 'pageSize': PAGE_SIZE}
            if page_token:
                request_params['pageToken'] = page_token

            try:
                response = self.service.mediaItems().list(**request_params).execute()
            except HttpError as e:
                raise PhotosApiError.from_http_error('Listing selected media items', e) from e
            except GoogleAuthError as e:
                raise PhotosApiError(f"Listing selected media items failed, authorization error: {e}") from e

            page += 1
            media_items = response.get('mediaItems', [])
            logger.debug("Page %d: %d media items", page, len(media_items))
            yield from media_items

            page_token = response.get('nextPageToken')
            if not page_token:
                break

    def get_selected_media_items(self, session_id: str) -> List[Dict]:
        """
        Get the media items selected by the user in a session.

        Returns:
            List[Dict]: Selected media items
        """
        return list(self.iter_selected_media_items(session_id))

    def delete_session(self, session_id: str) -> bool:
        """
        Delete a picking session to free up resources.

        Returns:
            bool: True if deletion successful
        """
        try:
            self._request('DELETE', f"sessions/{session_id}", 'Deleting session')
        except PhotosApiError as e:
            print(f"❌ Error deleting session: {e}")
            return False
        print(f"🗑️  Deleted session: {session_id}")
        return True

    def run_complete_picking_workflow(self, downloader: MediaDownloader,
                                      max_items: Optional[int] = None,
                                      open_browser: bool = False,
                                      poll_interval: Optional[float] = None,
                                      timeout: Optional[float] = None) -> DownloadSummary:
        """
        Run the complete photo picking workflow:
        1. Create session
        2. Show picker URL to user
        3. Poll until completion
        4. Retrieve selected items
        5. Download files
        6. Clean up session (always, once created)

        Returns:
            DownloadSummary: What was downloaded, skipped and failed
        """
        session_data = self.create_picking_session(max_items)
        session_id = session_data['id']
        picker_uri = session_data.get('pickerUri')

        try:
            print("\n📱 USER ACTION REQUIRED:")
            print("Please open this URL in your browser to select photos:")
            print(f"🔗 {picker_uri}")
            print("\nAfter selecting photos, click 'Done' in the picker interface.")
            print("This script will automatically detect when you're finished.\n")
            if open_browser and picker_uri:
                # '/autoclose' closes the picker tab once the user is done
                webbrowser.open(picker_uri.rstrip('/') + '/autoclose')

            self.poll_session_until_complete(session_data, poll_interval=poll_interval,
                                             timeout=timeout)

            print("\n📥 Retrieving selected media items...")
            refs = [MediaReference.from_picker_item(item)
                    for item in self.iter_selected_media_items(session_id)]
            print(f"✅ Found {len(refs)} selected media items")

            print(f"\n💾 Downloading {len(refs)} files...")
            return downloader.download_all(refs)
        finally:
            self.delete_session(session_id)
