"""Exceptions raised by the Google Photos download client."""
from typing import Optional


class PhotosDownloadError(Exception):
    """Base class for every error the CLI reports and exits on."""


class AuthorizationError(PhotosDownloadError):
    """OAuth client secrets are missing or the authorization handshake failed."""


class PhotosApiError(PhotosDownloadError):
    """A Google Photos API call returned an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_http_error(cls, action: str, error: Exception) -> 'PhotosApiError':
        """Wrap a requests.HTTPError or googleapiclient HttpError."""
        status = None
        response = getattr(error, 'response', None)
        if response is not None:
            status = getattr(response, 'status_code', None)
        resp = getattr(error, 'resp', None)
        if status is None and resp is not None:
            status = getattr(resp, 'status', None)
        message = f"{action} failed"
        if status is not None:
            message += f" (HTTP {status})"
        return cls(f"{message}: {error}", status_code=status)


class PickerTimeoutError(PhotosDownloadError):
    """The user did not finish selecting media before the session timed out."""


class DownloadError(PhotosDownloadError):
    """A single media file could not be transferred."""
