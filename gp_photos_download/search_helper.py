# Google Photos Library API search with filters.
import copy
import logging
import time
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional

# Google API imports
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import PAGE_SIZE, SEARCH_PAGE_DELAY
from .errors import PhotosApiError

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = ['FAVORITES']
MEDIA_TYPES = ('ALL_MEDIA', 'PHOTO', 'VIDEO')

# Open end of a date range given only one bound
EARLIEST_DATE = date(1900, 1, 1)


def _to_api_date(value) -> Dict:
    if isinstance(value, str):
        value = datetime.strptime(value, '%Y-%m-%d').date()
    return {'year': value.year, 'month': value.month, 'day': value.day}


def build_filters(features: Optional[Iterable[str]] = None,
                  media_type: Optional[str] = None,
                  content_categories: Optional[Iterable[str]] = None,
                  start_date=None,
                  end_date=None,
                  include_archived: bool = False) -> Dict:
    """
    Build the 'filters' payload of a mediaItems:search request.

    With no arguments this selects the user's favorites.

    Args:
        features: Feature names, e.g. ['FAVORITES']
        media_type: One of ALL_MEDIA, PHOTO, VIDEO
        content_categories: Content categories to include, e.g. ['LANDSCAPES']
        start_date: First day (date or 'YYYY-MM-DD'); open-ended if omitted
        end_date: Last day (date or 'YYYY-MM-DD'); today if omitted
        include_archived: Also return archived media
    """
    filters = {}

    features = list(features) if features else []
    categories = list(content_categories) if content_categories else []
    if not features and not categories and not media_type and not (start_date or end_date):
        features = list(DEFAULT_FEATURES)

    if features:
        filters['featureFilter'] = {'includedFeatures': [f.upper() for f in features]}

    if categories:
        filters['contentFilter'] = {'includedContentCategories': [c.upper() for c in categories]}

    if media_type:
        media_type = media_type.upper()
        if media_type not in MEDIA_TYPES:
            raise ValueError(f"Unknown media type {media_type!r}, expected one of {MEDIA_TYPES}")
        filters['mediaTypeFilter'] = {'mediaTypes': [media_type]}

    if start_date or end_date:
        filters['dateFilter'] = {'ranges': [{
            'startDate': _to_api_date(start_date or EARLIEST_DATE),
            'endDate': _to_api_date(end_date or date.today()),
        }]}

    if include_archived:
        filters['includeArchivedMedia'] = True

    return filters


class GooglePhotosLibraryAPI:
    """
    Google Photos Library API client for filtered searches.
    """

    def __init__(self, credentials, service=None,
                 page_delay: float = SEARCH_PAGE_DELAY,
                 sleep: Callable[[float], None] = time.sleep):
        self.credentials = credentials
        if service is None:
            service = build('photoslibrary', 'v1', credentials=credentials, static_discovery=False)
        self.service = service
        self.page_delay = page_delay
        self.sleep = sleep

    def iter_media_items(self, filters: Optional[Dict] = None,
                         album_id: Optional[str] = None) -> Iterator[Dict]:
        """
        Yield media items matching the filters (or in the album), following
        nextPageToken until the last page.
        """
        if filters and album_id:
            raise ValueError("A search takes either an album id or filters, not both")

        base_body = {'pageSize': PAGE_SIZE}
        if album_id:
            base_body['albumId'] = album_id
        else:
            base_body['filters'] = copy.deepcopy(filters) if filters else build_filters()

        page_token = None
        page = 0
        while True:
            body = dict(base_body)
            if page_token:
                body['pageToken'] = page_token

            try:
                response = self.service.mediaItems().search(body=body).execute()
            except HttpError as e:
                raise PhotosApiError.from_http_error('Searching media items', e) from e
            except GoogleAuthError as e:
                raise PhotosApiError(f"Searching media items failed, authorization error: {e}") from e

            page += 1
            media_items = response.get('mediaItems', [])
            logger.debug("Page %d: %d media items", page, len(media_items))
            yield from media_items

            page_token = response.get('nextPageToken')
            if not page_token:
                break
            # Pause briefly to avoid tripping rate limits
            self.sleep(self.page_delay)

    def search_media_items(self, filters: Optional[Dict] = None,
                           album_id: Optional[str] = None) -> List[Dict]:
        """Collect every matching media item."""
        return list(self.iter_media_items(filters=filters, album_id=album_id))
