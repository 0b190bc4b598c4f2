# Defaults and run settings for Google Photos downloads.
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

# API endpoints
PICKER_API_BASE = 'https://photospicker.googleapis.com/v1'

# Required scopes
PICKER_SCOPES = ['https://www.googleapis.com/auth/photospicker.mediaitems.readonly']
LIBRARY_SCOPES = ['https://www.googleapis.com/auth/photoslibrary.readonly']

# OAuth client secret and cached token
DEFAULT_CREDENTIALS_PATH = os.environ.get('GP_PHOTOS_CREDENTIALS', '.env/client_secret.json')
DEFAULT_TOKEN_PATH = os.environ.get('GP_PHOTOS_TOKEN', '.env/token.json')

# Local callback listener for the authorization code
DEFAULT_REDIRECT_PORT = 8080

# Pagination
PAGE_SIZE = 100
SEARCH_PAGE_DELAY = 0.1     # seconds between search pages

# Used when the picker session carries no pollingConfig
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_POLL_TIMEOUT = 10 * 60.0

# Streaming download
CHUNK_SIZE = 8192
PART_SUFFIX = '.part'

MODE_PICKER = 'picker'
MODE_SEARCH = 'search'


@dataclass
class Settings:
    """Everything a single download run needs, as parsed from the command line."""
    folder: Path
    mode: str = MODE_PICKER
    credentials_path: str = DEFAULT_CREDENTIALS_PATH
    token_path: str = DEFAULT_TOKEN_PATH
    port: int = DEFAULT_REDIRECT_PORT
    open_browser: bool = False

    # picker
    max_items: Optional[int] = None
    poll_interval: Optional[float] = None
    timeout: Optional[float] = None

    # search
    features: List[str] = field(default_factory=list)
    media_type: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    album_id: Optional[str] = None
    include_archived: bool = False

    # post-processing
    set_dates: bool = False
    artist: str = ''
    copyright_text: str = ''

    verbose: bool = False

    @property
    def scopes(self) -> List[str]:
        return PICKER_SCOPES if self.mode == MODE_PICKER else LIBRARY_SCOPES
