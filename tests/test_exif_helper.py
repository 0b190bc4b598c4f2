"""
Tests for stamping downloaded files with their creation time.
"""

import os
from datetime import datetime, timezone

import piexif

from gp_photos_download import exif_helper
from gp_photos_download.download_helper import MediaReference


def test_utc_to_local_keeps_instant():
    local = exif_helper.utc_to_local('2024-05-01T10:20:30Z')
    assert local.tzinfo is not None
    assert local.astimezone(timezone.utc) == datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc)


def test_utc_to_local_nanosecond_fraction():
    local = exif_helper.utc_to_local('2024-05-01T10:20:30.123456789Z')
    assert local.astimezone(timezone.utc).microsecond == 123456


def test_utc_to_local_empty():
    assert exif_helper.utc_to_local('') is None


def test_fix_exif_types_drops_problematic_fields():
    exif_dict = {'Exif': {41729: 1, piexif.ExifIFD.ExposureTime: (1, 100)}}
    exif_helper.fix_exif_types(exif_dict)
    assert exif_dict['Exif'] == {piexif.ExifIFD.ExposureTime: (1, 100)}


def test_update_exif_metadata(monkeypatch, tmp_path):
    loaded = {
        '0th': {piexif.ImageIFD.Software: b'Picasa'},
        'Exif': {41729: 1},
        '1st': {},
        'thumbnail': None,
    }
    monkeypatch.setattr(exif_helper.piexif, 'load', lambda path: loaded)
    taken = datetime(2024, 5, 1, 12, 0, 0)

    exif_dict = exif_helper.update_exif_metadata(tmp_path / 'a.jpg', taken,
                                                 artist_text='Someone', copyright_text='(c) 2024')

    assert piexif.ImageIFD.Software not in exif_dict['0th']
    assert 41729 not in exif_dict['Exif']
    assert exif_dict['Exif'][piexif.ExifIFD.DateTimeOriginal] == b'2024:05:01 12:00:00'
    assert exif_dict['0th'][piexif.ImageIFD.DateTime] == b'2024:05:01 12:00:00'
    assert exif_dict['0th'][piexif.ImageIFD.Artist] == b'Someone'
    assert exif_dict['0th'][piexif.ImageIFD.Copyright] == b'(c) 2024'


def test_update_exif_metadata_leaves_artist_alone_when_not_given(monkeypatch, tmp_path):
    monkeypatch.setattr(exif_helper.piexif, 'load',
                        lambda path: {'0th': {piexif.ImageIFD.Artist: b'Camera Owner'}})
    exif_dict = exif_helper.update_exif_metadata(tmp_path / 'a.jpg')
    assert exif_dict['0th'][piexif.ImageIFD.Artist] == b'Camera Owner'


def test_apply_creation_time_sets_mtime(tmp_path):
    path = tmp_path / 'clip.mp4'
    path.write_bytes(b'video')
    ref = MediaReference('https://host/v', 'clip.mp4', 'video/mp4', '2020-02-03T04:05:06Z')

    assert exif_helper.apply_creation_time(path, ref) is True

    expected = datetime(2020, 2, 3, 4, 5, 6, tzinfo=timezone.utc).timestamp()
    assert os.path.getmtime(path) == expected


def test_apply_creation_time_bad_jpeg_keeps_file(tmp_path):
    path = tmp_path / 'broken.jpg'
    path.write_bytes(b'not an image')
    ref = MediaReference('https://host/b', 'broken.jpg', 'image/jpeg', '2020-02-03T04:05:06Z')

    assert exif_helper.apply_creation_time(path, ref) is False

    assert path.read_bytes() == b'not an image'
    expected = datetime(2020, 2, 3, 4, 5, 6, tzinfo=timezone.utc).timestamp()
    assert os.path.getmtime(path) == expected


def test_apply_creation_time_without_time(tmp_path):
    path = tmp_path / 'a.png'
    path.write_bytes(b'png')
    before = os.path.getmtime(path)
    assert exif_helper.apply_creation_time(path, MediaReference('u', 'a.png', 'image/png')) is True
    assert os.path.getmtime(path) == before
