from enum import Enum


class PlayMode(str, Enum):
    NORMAL = "NORMAL"
    REPEAT_ALL = "REPEAT_ALL"
    REPEAT_ONE = "REPEAT_ONE"
    SHUFFLE_NOREPEAT = "SHUFFLE_NOREPEAT"
    SHUFFLE = "SHUFFLE"
    SHUFFLE_REPEAT_ONE = "SHUFFLE_REPEAT_ONE"

    @classmethod
    def parse(cls, value: str | None) -> "PlayMode":
        raw = (value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Unknown play mode: {value!r}") from None

    @property
    def is_shuffle(self) -> bool:
        return self in _SHUFFLE_MODES

    def toggled_shuffle(self) -> "PlayMode":
        return _SHUFFLE_TOGGLE[self]


_SHUFFLE_MODES = frozenset(
    {PlayMode.SHUFFLE_NOREPEAT, PlayMode.SHUFFLE, PlayMode.SHUFFLE_REPEAT_ONE}
)

# Each pair keeps its repeat component and flips shuffle only.
_SHUFFLE_PAIRS = (
    (PlayMode.NORMAL, PlayMode.SHUFFLE_NOREPEAT),
    (PlayMode.REPEAT_ALL, PlayMode.SHUFFLE),
    (PlayMode.REPEAT_ONE, PlayMode.SHUFFLE_REPEAT_ONE),
)
_SHUFFLE_TOGGLE: dict[PlayMode, PlayMode] = {}
for _plain, _shuffled in _SHUFFLE_PAIRS:
    _SHUFFLE_TOGGLE[_plain] = _shuffled
    _SHUFFLE_TOGGLE[_shuffled] = _plain
