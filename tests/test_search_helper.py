"""
Tests for library search filters and continuation-token paging.
"""

from datetime import date
from unittest import mock

import pytest
from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError

from gp_photos_download.errors import PhotosApiError
from gp_photos_download.search_helper import GooglePhotosLibraryAPI, build_filters


class TestBuildFilters:

    def test_defaults_to_favorites(self):
        assert build_filters() == {'featureFilter': {'includedFeatures': ['FAVORITES']}}

    def test_media_type_and_categories(self):
        filters = build_filters(media_type='photo', content_categories=['landscapes', 'PETS'])
        assert filters == {
            'contentFilter': {'includedContentCategories': ['LANDSCAPES', 'PETS']},
            'mediaTypeFilter': {'mediaTypes': ['PHOTO']},
        }

    def test_date_range(self):
        filters = build_filters(start_date='2023-06-01', end_date=date(2023, 6, 30))
        assert filters['dateFilter'] == {'ranges': [{
            'startDate': {'year': 2023, 'month': 6, 'day': 1},
            'endDate': {'year': 2023, 'month': 6, 'day': 30},
        }]}
        assert 'featureFilter' not in filters

    def test_open_ended_start(self):
        filters = build_filters(end_date='2020-01-31')
        assert filters['dateFilter']['ranges'][0]['startDate'] == {'year': 1900, 'month': 1, 'day': 1}

    def test_features_combined_with_dates(self):
        filters = build_filters(features=['favorites'], start_date='2023-01-01',
                                end_date='2023-12-31', include_archived=True)
        assert filters['featureFilter'] == {'includedFeatures': ['FAVORITES']}
        assert filters['includeArchivedMedia'] is True

    def test_unknown_media_type(self):
        with pytest.raises(ValueError, match='Unknown media type'):
            build_filters(media_type='AUDIO')

    def test_bad_date(self):
        with pytest.raises(ValueError):
            build_filters(start_date='01/02/2023')


class TestSearch:

    @pytest.fixture
    def service(self):
        return mock.MagicMock()

    @pytest.fixture
    def sleep(self):
        return mock.Mock()

    @pytest.fixture
    def api(self, credentials, service, sleep):
        return GooglePhotosLibraryAPI(credentials, service=service, sleep=sleep)

    def test_pages_until_no_token(self, api, service, sleep):
        search = service.mediaItems.return_value.search
        search.return_value.execute.side_effect = [
            {'mediaItems': [{'id': '1'}, {'id': '2'}], 'nextPageToken': 't2'},
            {'mediaItems': [{'id': '3'}], 'nextPageToken': 't3'},
            {'mediaItems': [{'id': '4'}]},
        ]
        filters = build_filters()

        items = api.search_media_items(filters)

        assert [item['id'] for item in items] == ['1', '2', '3', '4']
        bodies = [c[1]['body'] for c in search.call_args_list]
        assert [b.get('pageToken') for b in bodies] == [None, 't2', 't3']
        assert all(b['pageSize'] == 100 for b in bodies)
        assert all(b['filters'] == filters for b in bodies)
        # Pause between pages, not after the last one
        assert sleep.call_count == 2

    def test_caller_filters_not_mutated(self, api, service):
        service.mediaItems.return_value.search.return_value.execute.return_value = {}
        filters = build_filters()
        original = {'featureFilter': {'includedFeatures': ['FAVORITES']}}

        api.search_media_items(filters)

        assert filters == original

    def test_default_filters_when_none_given(self, api, service):
        search = service.mediaItems.return_value.search
        search.return_value.execute.return_value = {}
        api.search_media_items()
        assert search.call_args[1]['body']['filters'] == build_filters()

    def test_album_search(self, api, service):
        search = service.mediaItems.return_value.search
        search.return_value.execute.return_value = {'mediaItems': [{'id': 'x'}]}
        items = api.search_media_items(album_id='album-1')
        assert items == [{'id': 'x'}]
        assert search.call_args[1]['body'] == {'pageSize': 100, 'albumId': 'album-1'}

    def test_album_and_filters_are_exclusive(self, api):
        with pytest.raises(ValueError):
            api.search_media_items(build_filters(), album_id='album-1')

    def test_api_error_is_wrapped(self, api, service):
        error = HttpError(mock.Mock(status=429, reason='Too Many Requests'), b'quota')
        service.mediaItems.return_value.search.return_value.execute.side_effect = error
        with pytest.raises(PhotosApiError) as exc_info:
            api.search_media_items()
        assert exc_info.value.status_code == 429

    def test_auth_transport_error_is_wrapped(self, api, service):
        service.mediaItems.return_value.search.return_value.execute.side_effect = \
            TransportError('no route to host')
        with pytest.raises(PhotosApiError, match='no route to host'):
            api.search_media_items()
