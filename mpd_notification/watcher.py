# mpd_notification/watcher.py
import threading
from typing import Callable, Optional

from .debug import debug_log
from .notifier import NotificationError, Notifier
from .session import (
    MpdSession,
    SessionCommandError,
    SessionConnectionError,
    backoff_delays,
    connect_with_backoff,
)

SUBSYSTEMS = ("player",)


class Watcher:
    """
    Idle loop: wait for a player change, then notify if something is playing.

    Only `player` changes wake the loop, so volume/playlist/database updates
    never produce a notification.
    """

    def __init__(
        self,
        notifier: Notifier,
        connect: Callable[[], Optional[MpdSession]],
        session: Optional[MpdSession] = None,
        stop_event: Optional[threading.Event] = None,
        delays: Callable = backoff_delays,
    ):
        self.notifier = notifier
        self._connect = connect
        self.session = session
        self._stop = stop_event or threading.Event()
        self._delays = delays
        self._retry = None

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> None:
        while not self._stop.is_set():
            if self.session is None:
                self.session = self._connect()
                if self.session is None:
                    break

            try:
                self.step()
            except SessionConnectionError as e:
                print(f"[MPD] Connection lost: {e}")
                self._drop_session()
            except SessionCommandError as e:
                # the server keeps refusing idle (e.g. missing password)
                if self._retry is None:
                    self._retry = self._delays()
                delay = next(self._retry)
                print(f"[MPD] Idle failed: {e}, retrying in {delay:g}s")
                self._stop.wait(delay)
            else:
                self._retry = None

        self._drop_session()

    def step(self) -> None:
        changed = self.session.await_change(SUBSYSTEMS)
        debug_log(f"Changed: {changed}")

        try:
            status = self.session.query_status()
        except SessionCommandError as e:
            print(f"[MPD] Unknown status : {e}")
            return
        if not status.playing:
            return

        try:
            track = self.session.query_current_track()
        except SessionCommandError as e:
            print(f"[MPD] Could not read current song: {e}")
            return
        if track is None:
            # state flipped again before we asked
            return

        try:
            self.notifier.notify_track(track)
        except NotificationError as e:
            print(f"[Notify] Failed: {e}")

    def close(self) -> None:
        self.stop()
        self._drop_session()

    def _drop_session(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None


def make_connector(address: str, password: Optional[str], stop_event: threading.Event, max_attempts=None):
    def connect() -> Optional[MpdSession]:
        print(f"[MPD] Connecting to server at : {address}")
        return connect_with_backoff(
            address,
            password,
            stop_event=stop_event,
            max_attempts=max_attempts,
        )

    return connect
