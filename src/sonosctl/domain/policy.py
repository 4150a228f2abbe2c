import time
from dataclasses import dataclass, field

from sonosctl.domain.events import CommandType, InputEvent

_REPEATABLE = frozenset({CommandType.VOLUME_UP, CommandType.VOLUME_DOWN})


@dataclass
class CommandPolicy:
    dedupe_window_s: float = 0.25
    _last_seen_by_kind: dict[CommandType, float] = field(default_factory=dict)

    def should_emit(self, event: InputEvent, now: float | None = None) -> bool:
        # Dial ticks and volume keys accumulate; only toggles are debounced.
        if event.kind in _REPEATABLE:
            return True
        ts = now if now is not None else time.monotonic()
        last_seen = self._last_seen_by_kind.get(event.kind)
        if last_seen is not None and (ts - last_seen) < self.dedupe_window_s:
            return False
        self._last_seen_by_kind[event.kind] = ts
        return True
