from .events import CommandType, InputEvent
from .playmode import PlayMode
from .policy import CommandPolicy
from .result import Failure, Ok, Result
from .state import PlayState, TrackInfo

__all__ = [
    "CommandType",
    "InputEvent",
    "PlayMode",
    "CommandPolicy",
    "Failure",
    "Ok",
    "Result",
    "PlayState",
    "TrackInfo",
]
