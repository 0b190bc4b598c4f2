"""
    Google Photos downloader.
"""
import sys

from gp_photos_download import cli

sys.exit(cli.main())
