# Command line entry point: authorize, select media, download.
import argparse
import functools
import logging
import sys
from pathlib import Path
from typing import List, Optional

from google.auth.transport.requests import AuthorizedSession

from . import auth_helper
from .api_helper import GooglePhotosPickerAPI
from .config import (DEFAULT_CREDENTIALS_PATH, DEFAULT_REDIRECT_PORT, DEFAULT_TOKEN_PATH,
                     MODE_PICKER, MODE_SEARCH, Settings)
from .download_helper import DownloadSummary, MediaDownloader, MediaReference
from .errors import PhotosDownloadError
from .exif_helper import apply_creation_time
from .search_helper import MEDIA_TYPES, GooglePhotosLibraryAPI, build_filters

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gp-photos-download',
        description="""Download Google Photos media into a local folder, skipping
        files that are already there. Media is either picked by you in the
        Google Photos Picker (picker mode) or found by a library search
        (search mode, favorites by default).""")
    parser.add_argument('-f', '--folder', required=True,
                        help="Folder where photos will be saved (created if missing)")
    parser.add_argument('-m', '--mode', choices=[MODE_PICKER, MODE_SEARCH], default=MODE_PICKER,
                        help="How media is selected (default: %(default)s)")
    parser.add_argument('-c', '--credentials', default=DEFAULT_CREDENTIALS_PATH,
                        help="OAuth 2.0 client secret JSON (default: %(default)s)")
    parser.add_argument('-t', '--token', default=DEFAULT_TOKEN_PATH,
                        help="Cached token file (default: %(default)s)")
    parser.add_argument('-p', '--port', type=int, default=DEFAULT_REDIRECT_PORT,
                        help="Port of the local authorization listener (default: %(default)s)")
    parser.add_argument('-b', '--open-browser', action='store_true',
                        help="Open authorization and picker pages in the default browser")

    picker = parser.add_argument_group('picker mode')
    picker.add_argument('--max-items', type=positive_int,
                        help="Maximum number of items the user may pick")
    picker.add_argument('--poll-interval', type=float,
                        help="Seconds between session polls (default: server provided)")
    picker.add_argument('--timeout', type=float,
                        help="Seconds to wait for the selection (default: server provided)")

    search = parser.add_argument_group('search mode')
    search.add_argument('--feature', dest='features', action='append', default=[],
                        help="Feature filter, repeatable (default: FAVORITES)")
    search.add_argument('--media-type', choices=MEDIA_TYPES, type=str.upper,
                        help="Restrict to photos or videos")
    search.add_argument('--category', dest='categories', action='append', default=[],
                        help="Content category, repeatable (e.g. LANDSCAPES)")
    search.add_argument('--start-date', help="First day, YYYY-MM-DD")
    search.add_argument('--end-date', help="Last day, YYYY-MM-DD")
    search.add_argument('--album-id', help="Download an album instead of filtering")
    search.add_argument('--include-archived', action='store_true',
                        help="Include archived media")

    meta = parser.add_argument_group('metadata')
    meta.add_argument('--set-dates', action='store_true',
                      help="Set file time (and JPEG EXIF dates) to when the media was taken")
    meta.add_argument('--artist', default='', help="EXIF Artist for JPEG files (with --set-dates)")
    meta.add_argument('--copyright', dest='copyright_text', default='',
                      help="EXIF Copyright for JPEG files (with --set-dates)")

    parser.add_argument('-v', '--verbose', action='store_true', help="Debug logging")
    return parser


def parse_settings(argv: Optional[List[str]] = None) -> Settings:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.album_id and (args.features or args.categories or args.media_type
                          or args.start_date or args.end_date):
        parser.error("--album-id cannot be combined with search filters")
    return Settings(folder=Path(args.folder),
                    mode=args.mode,
                    credentials_path=args.credentials,
                    token_path=args.token,
                    port=args.port,
                    open_browser=args.open_browser,
                    max_items=args.max_items,
                    poll_interval=args.poll_interval,
                    timeout=args.timeout,
                    features=args.features,
                    media_type=args.media_type,
                    categories=args.categories,
                    start_date=args.start_date,
                    end_date=args.end_date,
                    album_id=args.album_id,
                    include_archived=args.include_archived,
                    set_dates=args.set_dates,
                    artist=args.artist,
                    copyright_text=args.copyright_text,
                    verbose=args.verbose)


def make_downloader(settings: Settings, session) -> MediaDownloader:
    post_process = None
    if settings.set_dates:
        post_process = functools.partial(apply_creation_time,
                                         artist_text=settings.artist,
                                         copyright_text=settings.copyright_text)
    return MediaDownloader(settings.folder, session, post_process=post_process)


def run_search(settings: Settings, credentials, downloader: MediaDownloader,
               library_api: Optional[GooglePhotosLibraryAPI] = None) -> DownloadSummary:
    library_api = library_api or GooglePhotosLibraryAPI(credentials)
    filters = None
    if not settings.album_id:
        try:
            filters = build_filters(features=settings.features,
                                    media_type=settings.media_type,
                                    content_categories=settings.categories,
                                    start_date=settings.start_date,
                                    end_date=settings.end_date,
                                    include_archived=settings.include_archived)
        except ValueError as e:
            raise PhotosDownloadError(f"Invalid search filter: {e}") from e

    print("Fetching photos from Google Photos...")
    refs = [MediaReference.from_library_item(item)
            for item in library_api.iter_media_items(filters=filters, album_id=settings.album_id)]
    print(f"Found {len(refs)} photos.")
    return downloader.download_all(refs)


def run(settings: Settings) -> DownloadSummary:
    try:
        settings.folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PhotosDownloadError(f"Unable to create folder {settings.folder}: {e}") from e

    credentials = auth_helper.get_credentials(settings.credentials_path, settings.token_path,
                                              settings.scopes, port=settings.port,
                                              open_browser=settings.open_browser)
    session = AuthorizedSession(credentials)
    downloader = make_downloader(settings, session)

    if settings.mode == MODE_PICKER:
        picker_api = GooglePhotosPickerAPI(credentials, session=session)
        return picker_api.run_complete_picking_workflow(downloader,
                                                        max_items=settings.max_items,
                                                        open_browser=settings.open_browser,
                                                        poll_interval=settings.poll_interval,
                                                        timeout=settings.timeout)
    return run_search(settings, credentials, downloader)


def print_summary(summary: DownloadSummary):
    print(f"\n📊 Summary: {summary.total} files, {len(summary.downloaded)} downloaded, "
          f"{len(summary.skipped)} skipped, {len(summary.failed)} failed")
    for name in summary.failed:
        print(f"  ❌ {name}")


def main(argv: Optional[List[str]] = None) -> int:
    settings = parse_settings(argv)
    logging.basicConfig(level=logging.DEBUG if settings.verbose else logging.WARNING,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logger.debug("Settings: %s", settings)

    try:
        summary = run(settings)
    except (PhotosDownloadError, OSError) as e:
        print(f"❌ {e}")
        return 1

    print_summary(summary)
    print("Finished downloading photos.")
    return 1 if summary.failed else 0


if __name__ == '__main__':
    sys.exit(main())
