# mpd_notification/notifier.py
from pathlib import Path
from typing import Optional

from .artwork import album_directory, resolve_album_art
from .debug import debug_log
from .models import NotificationPayload, Track

APP_NAME = "mpd-notification"

NO_TITLE = "No Title"
FALLBACK_ICON = "audio-x-generic"
GROUP_KEY = "mpd-notification"
GROUP_HINT = "x-canonical-private-synchronous"
TIMEOUT_MS = 6000


class NotificationError(Exception):
    pass


def build_payload(track: Track, art: Optional[Path]) -> NotificationPayload:
    album = track.first_tag("Album") or ""
    artist = track.artist or ""
    return NotificationPayload(
        summary=track.title or NO_TITLE,
        body=f"{artist}\n{album}",
        icon=str(art) if art else FALLBACK_ICON,
        group=GROUP_KEY,
    )


class LibnotifySurface:
    """
    Desktop notifications through libnotify (PyGObject).

    A single Notification is reused so that servers ignoring the grouping
    hint still replace the previous popup instead of stacking.
    """

    def __init__(self, app_name: str = APP_NAME):
        try:
            import gi

            gi.require_version("Notify", "0.7")
            from gi.repository import GLib, Notify
        except (ImportError, ValueError) as e:
            raise NotificationError(f"libnotify bindings unavailable: {e}") from e

        self._glib = GLib
        if not Notify.is_initted() and not Notify.init(app_name):
            raise NotificationError("could not initialise libnotify")
        self._notification = Notify.Notification.new("", "", FALLBACK_ICON)

    def show(self, payload: NotificationPayload, timeout_ms: int) -> None:
        n = self._notification
        n.update(payload.summary, payload.body, payload.icon)
        n.set_hint(GROUP_HINT, self._glib.Variant("s", payload.group))
        n.set_timeout(timeout_ms)
        try:
            n.show()
        except self._glib.Error as e:
            raise NotificationError(e.message) from e


class Notifier:
    def __init__(self, surface, music_root: Path, timeout_ms: int = TIMEOUT_MS):
        self.surface = surface
        self.music_root = Path(music_root)
        self.timeout_ms = timeout_ms

    def dispatch(self, payload: NotificationPayload) -> None:
        try:
            self.surface.show(payload, self.timeout_ms)
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationError(str(e)) from e

    def notify_track(self, track: Track) -> NotificationPayload:
        art = resolve_album_art(album_directory(self.music_root, track))
        payload = build_payload(track, art)

        album = track.first_tag("Album") or ""
        print(f"[Notify] {payload.summary} | {track.artist or ''} | {album} | {art}")
        debug_log(f"Notify payload: {payload}")

        self.dispatch(payload)
        return payload
