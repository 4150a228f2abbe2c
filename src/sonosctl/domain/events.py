from dataclasses import dataclass
from enum import Enum


class CommandType(str, Enum):
    PLAY_PAUSE = "play_pause"
    NEXT = "next"
    PREVIOUS = "previous"
    SHUFFLE = "shuffle"
    VOLUME_UP = "volume_up"
    VOLUME_DOWN = "volume_down"
    MUTE = "mute"


@dataclass(frozen=True)
class InputEvent:
    kind: CommandType
    source: str
    key: str
