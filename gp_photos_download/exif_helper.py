"""
Stamp downloaded files with the time the photo was taken.

Google Photos serves '=d' downloads with the original EXIF, but the file's
modification time is the time of the download. After a download we:
    * set atime/mtime to the media creation time (local time zone)
    * for JPEG files, write DateTimeOriginal/DateTime and optional
      artist/copyright into EXIF

piexif sometimes loads fields in a form it cannot dump again; those fields
are dropped before writing (see fix_exif_types).

See also:
https://piexif.readthedocs.io/en/latest/functions.html
"""
import logging
import os
import struct
from datetime import datetime
from pathlib import Path
from typing import Optional

import piexif
import pytz

logger = logging.getLogger(__name__)

# EXIF date format
DT_FORMAT = '%Y:%m:%d %H:%M:%S'

JPEG_SUFFIXES = ('.jpg', '.jpeg')

# Fields that commonly fail piexif.dump() after piexif.load()
PROBLEMATIC_FIELDS = [
    41729,  # ColorSpace
    41730,  # WhitePoint
    41985,  # CustomRendered
    41986,  # ExposureMode
    41987,  # WhiteBalance
    41988,  # DigitalZoomRatio
    41989,  # FocalLengthIn35mmFilm
    41990,  # SceneCaptureType
    41991,  # GainControl
    41992,  # Contrast
    41993,  # Saturation
    41994,  # Sharpness
    41995,  # DeviceSettingDescription
    41996,  # SubjectDistanceRange
]


def utc_to_local(utc_string: str) -> Optional[datetime]:
    """Parse an RFC 3339 UTC timestamp ('2024-05-01T10:20:30.123Z') into local time."""
    if not utc_string:
        return None
    value = utc_string.replace('Z', '+00:00')
    # fromisoformat() before 3.11 accepts only 0, 3 or 6 fractional digits
    if '.' in value:
        head, _, tail = value.partition('.')
        digits = ''.join(c for c in tail if c.isdigit())
        tail = tail[len(digits):]
        value = f"{head}.{(digits + '000000')[:6]}{tail}"
    utc_dt = datetime.fromisoformat(value)
    if utc_dt.tzinfo is None:
        utc_dt = pytz.UTC.localize(utc_dt)
    return utc_dt.astimezone()


def fix_exif_types(exif_dict: dict) -> dict:
    """Remove EXIF fields that piexif cannot dump back."""
    exif_ifd = exif_dict.get("Exif", {})
    for tag in PROBLEMATIC_FIELDS:
        exif_ifd.pop(tag, None)
    return exif_dict


def update_exif_metadata(file_path: Path, taken: Optional[datetime] = None,
                         artist_text: str = '', copyright_text: str = '') -> dict:
    """
    Load EXIF from a JPEG and return it updated:
    problematic fields removed, "Software" removed, date taken, artist and
    copyright set when given.
    """
    exif_dict = piexif.load(str(file_path))
    exif_dict = fix_exif_types(exif_dict)

    zeroth = exif_dict.setdefault("0th", {})
    exif_ifd = exif_dict.setdefault("Exif", {})

    # "Program Name" lives in 0th IFD, sometimes also in Exif IFD
    zeroth.pop(piexif.ImageIFD.Software, None)
    exif_ifd.pop(piexif.ImageIFD.Software, None)

    if taken is not None:
        stamp = taken.strftime(DT_FORMAT).encode('utf-8')
        exif_ifd[piexif.ExifIFD.DateTimeOriginal] = stamp
        zeroth[piexif.ImageIFD.DateTime] = stamp

    if artist_text:
        zeroth[piexif.ImageIFD.Artist] = artist_text.encode('utf-8')
    if copyright_text:
        zeroth[piexif.ImageIFD.Copyright] = copyright_text.encode('utf-8')

    # Thumbnail IFD without data cannot be dumped
    if exif_dict.get("1st") and not exif_dict.get("thumbnail"):
        exif_dict["1st"] = {}

    return exif_dict


def apply_creation_time(file_path: Path, media_ref, artist_text: str = '',
                        copyright_text: str = '') -> bool:
    """
    Post-download hook: stamp the file with its creation time.

    Failures are reported as warnings; the downloaded file is kept either way.

    Returns:
        bool: True if all updates were applied
    """
    file_path = Path(file_path)
    try:
        taken = utc_to_local(media_ref.create_time)
    except (ValueError, OverflowError) as e:
        print(f"⚠️  Warning: Unrecognized creation time for {file_path.name}: {e}")
        taken = None
        ok = False
    else:
        ok = True

    is_jpeg = media_ref.mime_type == 'image/jpeg' or file_path.suffix.lower() in JPEG_SUFFIXES
    if is_jpeg and (taken or artist_text or copyright_text):
        try:
            exif_dict = update_exif_metadata(file_path, taken, artist_text, copyright_text)
            piexif.insert(piexif.dump(exif_dict), str(file_path))
            logger.debug("Updated EXIF of %s", file_path)
        except (piexif.InvalidImageDataError, ValueError, struct.error, OSError) as e:
            print(f"⚠️  Warning: Could not add metadata to {file_path.name}: {e}")
            ok = False

    if taken is not None:
        try:
            timestamp = taken.timestamp()
            # atime and mtime are the same here
            os.utime(file_path, (timestamp, timestamp))
        except (OSError, OverflowError, ValueError) as e:
            print(f"⚠️  Warning: Could not set file time of {file_path.name}: {e}")
            ok = False
    return ok
