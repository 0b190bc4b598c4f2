"""Pytest configuration and fixtures."""

import io
import json
from unittest import mock

import pytest
import requests


def make_response(status_code=200, json_data=None, body=b'', url='https://example.test/'):
    """Build a real requests.Response carrying a JSON payload or raw bytes."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    if json_data is not None:
        body = json.dumps(json_data).encode('utf-8')
    response._content = body
    response.raw = io.BytesIO(body)
    return response


def make_stream_response(body, status_code=200):
    """A response whose content has not been read yet, as with stream=True."""
    response = requests.Response()
    response.status_code = status_code
    response.url = 'https://example.test/media'
    response.raw = io.BytesIO(body)
    return response


class BrokenStream(io.RawIOBase):
    """Raw stream that yields one chunk then drops the connection."""

    def __init__(self, first_chunk):
        self._chunks = [first_chunk]

    def read(self, size=-1):
        if self._chunks:
            return self._chunks.pop(0)
        raise requests.ConnectionError("connection reset")


@pytest.fixture
def http_session():
    return mock.MagicMock(spec=requests.Session)


@pytest.fixture
def credentials():
    creds = mock.MagicMock()
    creds.token = 'access-token'
    return creds
