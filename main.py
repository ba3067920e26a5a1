import signal
import sys
import threading

from mpd_notification.config import ConfigError, load_settings
from mpd_notification.notifier import LibnotifySurface, NotificationError, Notifier
from mpd_notification.session import SessionConnectionError
from mpd_notification.watcher import Watcher, make_connector


def _exit_on_sigterm(signum, frame):
    raise SystemExit(0)


def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"[Config] {e}")
        return 1

    print(f"[Config] Music Dir: {settings.music_directory}")

    try:
        surface = LibnotifySurface()
    except NotificationError as e:
        print(f"[Notify] {e}")
        return 1

    notifier = Notifier(surface, settings.music_directory)
    stop_event = threading.Event()
    connect = make_connector(
        settings.host_name, settings.password, stop_event, settings.connect_attempts
    )
    watcher = Watcher(notifier, connect, stop_event=stop_event)

    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    print("[MPD] Watching player… (Ctrl+C to stop)")

    try:
        watcher.run()
    except SessionConnectionError as e:
        print(f"[MPD] No connection {e}")
        return 1
    except KeyboardInterrupt:
        pass
    finally:
        watcher.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
