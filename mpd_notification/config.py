# mpd_notification/config.py
"""
Startup settings: where the MPD server is and where the music lives.

Optional JSON file at $XDG_CONFIG_HOME/mpd-notification/config.json:

    {"host_name": "127.0.0.1:6600", "music_directory": "~/Music", "password": null,
     "connect_attempts": null}

MPD_HOST ([password@]host) and MPD_PORT override the file, like mpc does.
The music directory defaults to the XDG music directory.
"""
import json
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .debug import debug_log

DEFAULT_HOST_NAME = "127.0.0.1:6600"
APP_DIR_NAME = "mpd-notification"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    host_name: str
    music_directory: Path
    password: Optional[str] = None
    connect_attempts: Optional[int] = None


def config_home(env: Mapping[str, str]) -> Path:
    value = env.get("XDG_CONFIG_HOME")
    return Path(value) if value else Path(env.get("HOME") or Path.home()) / ".config"


def config_file(env: Mapping[str, str]) -> Path:
    return config_home(env) / APP_DIR_NAME / "config.json"


def load_file(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must hold a JSON object")
    debug_log(f"Config loaded from {path}")
    return data


def _expand_home(value: str, env: Mapping[str, str]) -> str:
    home = env.get("HOME") or str(Path.home())
    value = value.replace("${HOME}", home).replace("$HOME", home)
    if value == "~" or value.startswith("~/"):
        value = home + value[1:]
    return value


def xdg_music_dir(env: Mapping[str, str]) -> Path:
    """XDG_MUSIC_DIR from the environment or user-dirs.dirs, else ~/Music."""
    home = env.get("HOME") or str(Path.home())
    if env.get("XDG_MUSIC_DIR"):
        return Path(_expand_home(env["XDG_MUSIC_DIR"], env))

    user_dirs = config_home(env) / "user-dirs.dirs"
    try:
        lines = user_dirs.read_text(encoding="utf-8").splitlines()
    except OSError:
        lines = []

    for line in lines:
        line = line.strip()
        if line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        if key.strip() != "XDG_MUSIC_DIR":
            continue
        parts = shlex.split(value)
        if parts:
            return Path(_expand_home(parts[0], env))

    return Path(home) / "Music"


def host_from_env(env: Mapping[str, str], host_name: str, password: Optional[str]):
    host = env.get("MPD_HOST")
    port = env.get("MPD_PORT")
    if not host and not port:
        return host_name, password

    if host and "@" in host and not host.startswith("@"):
        password, _, host = host.partition("@")
    if not host:
        host = host_name.rsplit(":", 1)[0] if not host_name.startswith("/") else host_name
    if host.startswith("/"):
        return host, password
    if port:
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{host}:{port}", password
    return host, password


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    data = load_file(config_file(env))

    host_name = str(data.get("host_name") or DEFAULT_HOST_NAME)
    password = data.get("password") or None
    host_name, password = host_from_env(env, host_name, password)

    if data.get("music_directory"):
        music_directory = Path(_expand_home(str(data["music_directory"]), env))
    else:
        music_directory = xdg_music_dir(env)

    attempts = data.get("connect_attempts")
    if attempts is not None and (not isinstance(attempts, int) or attempts < 1):
        raise ConfigError(f"connect_attempts must be a positive integer, got {attempts!r}")

    if not music_directory.is_dir():
        raise ConfigError(f"Music directory not found: {music_directory}")

    return Settings(
        host_name=host_name,
        music_directory=music_directory.resolve(),
        password=password,
        connect_attempts=attempts,
    )
