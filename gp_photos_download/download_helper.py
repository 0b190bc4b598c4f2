# Streaming downloads of Google Photos media into a local folder.
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

import requests
from google.auth.exceptions import GoogleAuthError

from .config import CHUNK_SIZE, PART_SUFFIX
from .errors import DownloadError

logger = logging.getLogger(__name__)

SKIPPED = 'skipped'
DOWNLOADED = 'downloaded'


class MediaReference(NamedTuple):
    """A remote file: base URL plus the filename it is saved under."""
    base_url: str
    filename: str
    mime_type: str = ''
    create_time: str = ''

    @classmethod
    def from_picker_item(cls, item: Dict) -> 'MediaReference':
        """Picker items keep file details under 'mediaFile'."""
        media_file = item.get('mediaFile', {})
        return cls(base_url=media_file.get('baseUrl', ''),
                   filename=media_file.get('filename', ''),
                   mime_type=media_file.get('mimeType', ''),
                   create_time=item.get('createTime', ''))

    @classmethod
    def from_library_item(cls, item: Dict) -> 'MediaReference':
        return cls(base_url=item.get('baseUrl', ''),
                   filename=item.get('filename', ''),
                   mime_type=item.get('mimeType', ''),
                   create_time=item.get('mediaMetadata', {}).get('creationTime', ''))

    @property
    def is_video(self) -> bool:
        return self.mime_type.lower().startswith('video/')

    @property
    def download_url(self) -> str:
        # '=d' returns the original image bytes, '=dv' the original video
        return f"{self.base_url}={'dv' if self.is_video else 'd'}"


@dataclass
class DownloadSummary:
    downloaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.downloaded) + len(self.skipped) + len(self.failed)


class MediaDownloader:
    """
    Saves media references into a folder, one at a time.

    A file that already exists under the same name is never fetched again.
    Bytes are written to '<name>.part' and renamed once complete, so an
    interrupted run leaves nothing that would be mistaken for a finished file.
    """

    def __init__(self, download_dir, session: requests.Session,
                 post_process: Optional[Callable[[Path, MediaReference], None]] = None):
        """
        Args:
            download_dir: Directory to save downloaded files (must exist)
            session: HTTP session used for the transfers (authorized for picker media)
            post_process: Optional hook called with the saved path and its reference
        """
        self.download_dir = Path(download_dir)
        self.session = session
        self.post_process = post_process

    def target_path(self, ref: MediaReference) -> Path:
        # Only the basename is trusted; server filenames never escape the folder
        name = os.path.basename(ref.filename.replace('\\', '/'))
        if not name or name in ('.', '..'):
            raise DownloadError(f"Invalid filename: {ref.filename!r}")
        return self.download_dir / name

    def download(self, ref: MediaReference) -> str:
        """
        Download one media file unless it is already present.

        Returns:
            str: DOWNLOADED or SKIPPED
        """
        if not ref.base_url:
            raise DownloadError(f"No base URL for {ref.filename or 'unknown file'}")

        file_path = self.target_path(ref)
        if file_path.exists():
            print(f"File {file_path.name} already exists, skipping download.")
            return SKIPPED

        part_path = file_path.with_name(file_path.name + PART_SUFFIX)
        logger.debug("GET %s -> %s", ref.download_url, part_path)
        try:
            with self.session.get(ref.download_url, stream=True) as response:
                if response.status_code != 200:
                    raise DownloadError(
                        f"Failed to download file {file_path.name}, HTTP status {response.status_code}")
                with open(part_path, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            os.replace(part_path, file_path)
        except (requests.RequestException, GoogleAuthError, OSError) as e:
            self._discard(part_path)
            raise DownloadError(f"Failed to download file {file_path.name}: {e}") from e
        except BaseException:
            self._discard(part_path)
            raise

        print(f"✅ Downloaded: {file_path.name}")
        if self.post_process is not None:
            self.post_process(file_path, ref)
        return DOWNLOADED

    def download_all(self, refs: Iterable[MediaReference]) -> DownloadSummary:
        """
        Download every reference in order. A failed file is reported and
        counted; the remaining files are still attempted.
        """
        summary = DownloadSummary()
        refs = list(refs)
        for i, ref in enumerate(refs, 1):
            name = ref.filename or 'unknown'
            logger.debug("Downloading %d/%d: %s", i, len(refs), name)
            try:
                result = self.download(ref)
            except DownloadError as e:
                print(f"❌ Error downloading {name}: {e}")
                summary.failed.append(name)
                continue
            if result == SKIPPED:
                summary.skipped.append(name)
            else:
                summary.downloaded.append(name)
        return summary

    @staticmethod
    def _discard(part_path: Path):
        try:
            part_path.unlink()
        except FileNotFoundError:
            pass
