import logging
from dataclasses import dataclass

from sonosctl.application.surfaces import (
    PlayPauseSurface,
    ShuffleSurface,
    Surface,
    TrackSkipSurface,
    VolumeDialSurface,
)
from sonosctl.domain.events import CommandType, InputEvent
from sonosctl.domain.policy import CommandPolicy

LOG = logging.getLogger(__name__)


@dataclass
class Deck:
    play_pause: PlayPauseSurface
    next_track: TrackSkipSurface
    previous_track: TrackSkipSurface
    shuffle: ShuffleSurface
    volume: VolumeDialSurface

    @property
    def surfaces(self) -> list[Surface]:
        return [self.play_pause, self.next_track, self.previous_track, self.shuffle, self.volume]


_ROUTES: dict[CommandType, tuple[str, str, dict]] = {
    CommandType.PLAY_PAUSE: ("play_pause", "press", {}),
    CommandType.NEXT: ("next_track", "press", {}),
    CommandType.PREVIOUS: ("previous_track", "press", {}),
    CommandType.SHUFFLE: ("shuffle", "press", {}),
    CommandType.VOLUME_UP: ("volume", "rotate", {"ticks": 1}),
    CommandType.VOLUME_DOWN: ("volume", "rotate", {"ticks": -1}),
    CommandType.MUTE: ("volume", "push", {}),
}


class CommandRouter:
    def __init__(self, deck: Deck, policy: CommandPolicy | None = None) -> None:
        self.deck = deck
        self.policy = policy or CommandPolicy()

    async def handle_async(self, event: InputEvent) -> bool:
        if not self.policy.should_emit(event):
            LOG.debug("suppressed repeated event=%s key=%s", event.kind.value, event.key)
            return False
        route = _ROUTES.get(event.kind)
        if route is None:
            return False
        surface_name, command, kwargs = route
        ok = await getattr(self.deck, surface_name).on_command(command, **kwargs)
        LOG.debug("handled event=%s key=%s ok=%s", event.kind.value, event.key, ok)
        return ok
