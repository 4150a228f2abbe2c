import logging
from dataclasses import dataclass
from enum import Enum

LOG = logging.getLogger(__name__)


class PlayState(str, Enum):
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"
    TRANSITIONING = "TRANSITIONING"

    @classmethod
    def from_transport(cls, value: str | None) -> "PlayState":
        raw = (value or "").strip().upper()
        if raw in _TRANSPORT_ALIASES:
            return _TRANSPORT_ALIASES[raw]
        try:
            return cls(raw)
        except ValueError:
            LOG.debug("unknown transport state=%r mapped to STOPPED", value)
            return cls.STOPPED

    @property
    def is_active(self) -> bool:
        return self in (PlayState.PLAYING, PlayState.TRANSITIONING)


_TRANSPORT_ALIASES = {
    "PAUSED_PLAYBACK": PlayState.PAUSED,
    "PAUSED_RECORDING": PlayState.PAUSED,
    "NO_MEDIA_PRESENT": PlayState.STOPPED,
}


@dataclass(frozen=True)
class TrackInfo:
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    track_uri: str | None = None
    art_url: str | None = None
