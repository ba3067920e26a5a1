# mpd_notification/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class PlayState(Enum):
    STOPPED = "stop"
    PAUSED = "pause"
    PLAYING = "play"


@dataclass(frozen=True)
class Track:
    file: str
    title: Optional[str] = None
    artist: Optional[str] = None
    # (tag name, value) pairs in server order; a name may repeat
    tags: Tuple[Tuple[str, str], ...] = ()

    def first_tag(self, name: str) -> Optional[str]:
        for tag, value in self.tags:
            if tag == name:
                return value
        return None


@dataclass(frozen=True)
class PlaybackStatus:
    state: PlayState
    extra: dict = field(default_factory=dict)

    @property
    def playing(self) -> bool:
        return self.state is PlayState.PLAYING


@dataclass(frozen=True)
class NotificationPayload:
    summary: str
    body: str
    icon: str
    group: str
