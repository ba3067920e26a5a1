# mpd_notification/artwork.py
import os
import re
from pathlib import Path, PurePosixPath
from typing import Optional

from .debug import debug_log
from .models import Track

IMAGE_NAME = re.compile(r"\.(jpeg|jpg|gif|png|webp|avif|tiff)\Z", re.IGNORECASE)
_URL = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def album_directory(music_root: Path, track: Track) -> Optional[Path]:
    """Local directory holding the track, or None for streams."""
    if not track.file or _URL.match(track.file):
        return None
    relative = PurePosixPath(track.file).parent
    return Path(music_root).joinpath(*relative.parts)


def resolve_album_art(directory: Optional[Path]) -> Optional[Path]:
    """
    First image-like file in the album directory, by file name.

    An unreadable or missing directory just means there's no art: the music
    root here often doesn't match the server's (or MPD runs elsewhere).
    """
    if directory is None:
        return None

    try:
        with os.scandir(directory) as it:
            names = sorted(
                entry.name
                for entry in it
                if IMAGE_NAME.search(entry.name) and _is_file(entry)
            )
    except OSError as e:
        debug_log(f"No album art lookup in {directory}: {e}")
        return None

    if not names:
        return None
    return Path(directory) / names[0]


def _is_file(entry: os.DirEntry) -> bool:
    try:
        return entry.is_file()
    except OSError:
        return False
