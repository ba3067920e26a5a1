# mpd_notification/session.py
import threading
from typing import Callable, List, Optional, Tuple

import mpd

from .debug import debug_log
from .models import PlaybackStatus, PlayState, Track

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6600

BACKOFF_INITIAL_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 60.0

# python-mpd2 lowercases response keys; these don't title-case cleanly
_TAG_NAMES = {
    "albumartist": "AlbumArtist",
    "albumartistsort": "AlbumArtistSort",
    "albumsort": "AlbumSort",
    "artistsort": "ArtistSort",
    "titlesort": "TitleSort",
    "originaldate": "OriginalDate",
    "musicbrainz_artistid": "MUSICBRAINZ_ARTISTID",
    "musicbrainz_albumid": "MUSICBRAINZ_ALBUMID",
    "musicbrainz_albumartistid": "MUSICBRAINZ_ALBUMARTISTID",
    "musicbrainz_trackid": "MUSICBRAINZ_TRACKID",
    "musicbrainz_releasetrackid": "MUSICBRAINZ_RELEASETRACKID",
    "musicbrainz_workid": "MUSICBRAINZ_WORKID",
}

# song fields that are not metadata tags
_NON_TAG_KEYS = {
    "file", "title", "artist", "pos", "id", "prio", "time", "duration",
    "range", "last-modified", "added", "format",
}


class SessionError(Exception):
    pass


class SessionConnectionError(SessionError):
    pass


class SessionCommandError(SessionError):
    pass


def parse_address(address: str) -> Tuple[str, Optional[int]]:
    """
    Split "host:port" into its parts.

    Accepts "host", "host:port", "[v6addr]:port", a bare IPv6 address and an
    absolute UNIX socket path (returned with port None).
    """
    address = (address or "").strip()
    if not address:
        return DEFAULT_HOST, DEFAULT_PORT
    if address.startswith("/"):
        return address, None

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise ValueError(f"unterminated IPv6 address: {address!r}")
        port = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, port = address.split(":")
    else:
        host, port = address, ""

    if not port:
        return host, DEFAULT_PORT
    if not port.isdigit():
        raise ValueError(f"invalid port in address: {address!r}")
    return host, int(port)


def _first(value) -> Optional[str]:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _tag_name(key: str) -> str:
    return _TAG_NAMES.get(key, key[:1].upper() + key[1:])


def track_from_song(song: dict) -> Optional[Track]:
    if not song:
        return None

    tags: List[Tuple[str, str]] = []
    for key, value in song.items():
        if key in _NON_TAG_KEYS:
            continue
        values = value if isinstance(value, list) else [value]
        tags.extend((_tag_name(key), v) for v in values)

    return Track(
        file=_first(song.get("file")) or "",
        title=_first(song.get("title")),
        artist=_first(song.get("artist")),
        tags=tuple(tags),
    )


class MpdSession:
    """One connection to an MPD server, owned by the idle loop."""

    def __init__(self, client, address: str):
        self._client = client
        self.address = address

    @classmethod
    def connect(
        cls,
        address: str,
        password: Optional[str] = None,
        client_factory: Callable = mpd.MPDClient,
    ) -> "MpdSession":
        try:
            host, port = parse_address(address)
        except ValueError as e:
            raise SessionConnectionError(str(e)) from e

        client = client_factory()
        # the idle wait must be allowed to block forever
        client.timeout = None
        client.idletimeout = None
        try:
            if port is None:
                client.connect(host)
            else:
                client.connect(host, port)
            if password:
                client.password(password)
        except mpd.CommandError as e:
            _disconnect_quietly(client)
            raise SessionConnectionError(f"password rejected: {e}") from e
        except (mpd.MPDError, OSError) as e:
            _disconnect_quietly(client)
            raise SessionConnectionError(f"{address}: {e}") from e

        debug_log(f"Connected to {address} (MPD {getattr(client, 'mpd_version', '?')})")
        return cls(client, address)

    def await_change(self, subsystems=("player",)) -> List[str]:
        try:
            changed = self._client.idle(*subsystems)
        except mpd.CommandError as e:
            raise SessionCommandError(f"idle failed: {e}") from e
        except (mpd.MPDError, OSError) as e:
            raise SessionConnectionError(f"idle failed: {e}") from e
        return list(changed or [])

    def query_status(self) -> PlaybackStatus:
        status = self._call("status")
        raw_state = status.get("state", "stop")
        try:
            state = PlayState(raw_state)
        except ValueError:
            raise SessionCommandError(f"unexpected player state: {raw_state!r}")
        extra = {k: v for k, v in status.items() if k != "state"}
        return PlaybackStatus(state=state, extra=extra)

    def query_current_track(self) -> Optional[Track]:
        return track_from_song(self._call("currentsong"))

    def close(self) -> None:
        _disconnect_quietly(self._client)

    def _call(self, command: str):
        try:
            return getattr(self._client, command)()
        except mpd.CommandError as e:
            raise SessionCommandError(f"{command}: {e}") from e
        except (mpd.MPDError, OSError) as e:
            raise SessionConnectionError(f"{command}: {e}") from e


def _disconnect_quietly(client) -> None:
    try:
        client.disconnect()
    except (mpd.ConnectionError, OSError):
        pass


def backoff_delays(initial: float = BACKOFF_INITIAL_SECONDS, maximum: float = BACKOFF_MAX_SECONDS):
    delay = initial
    while True:
        yield min(delay, maximum)
        delay *= 2


def connect_with_backoff(
    address: str,
    password: Optional[str] = None,
    stop_event: Optional[threading.Event] = None,
    max_attempts: Optional[int] = None,
    connect: Callable[..., MpdSession] = MpdSession.connect,
    delays=None,
) -> Optional[MpdSession]:
    """
    Keep calling connect() until it succeeds.

    Returns None if stop_event gets set while waiting. Raises the last
    SessionConnectionError once max_attempts is used up.
    """
    stop_event = stop_event or threading.Event()
    delays = iter(delays if delays is not None else backoff_delays())
    attempt = 0

    while not stop_event.is_set():
        attempt += 1
        try:
            return connect(address, password)
        except SessionConnectionError as e:
            if max_attempts is not None and attempt >= max_attempts:
                raise
            delay = next(delays)
            print(f"[MPD] No connection ({e}), retrying in {delay:g}s")
            stop_event.wait(delay)

    return None
