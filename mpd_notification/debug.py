# mpd_notification/debug.py
import os
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

DEBUG_ENV = "MPDN_DEBUG"


def debug_enabled(env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    return env.get(DEBUG_ENV, "").strip() in {"1", "true", "yes", "on"}


def debug_log_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    cache = env.get("XDG_CACHE_HOME")
    base = Path(cache) if cache else Path.home() / ".cache"
    return base / "mpd-notification" / "debug.log"


def debug_log(message: str) -> None:
    """Echo and append to the debug log when MPDN_DEBUG is on."""
    if not debug_enabled():
        return

    print(f"[DEBUG] {message}")

    stamp = datetime.now().isoformat(sep=" ", timespec="seconds")
    path = debug_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(f"{stamp} {message}\n")
    except OSError:
        # a read-only cache dir shouldn't take the daemon down
        pass
