import asyncio
import logging

from sonosctl.application.reconciler import View
from sonosctl.application.router import CommandRouter, Deck
from sonosctl.application.service import ControlService
from sonosctl.application.session import SessionManager
from sonosctl.application.surfaces import (
    PlayPauseSurface,
    ShuffleSurface,
    TrackSkipSurface,
    VolumeDialSurface,
)
from sonosctl.domain.policy import CommandPolicy
from sonosctl.infrastructure.asset_fetch import ImageFetcher
from sonosctl.infrastructure.config import DaemonConfig
from sonosctl.infrastructure.keyboard_adapter import KeyboardAdapter

LOG = logging.getLogger(__name__)


def describe_view(view: View) -> str:
    parts = [view.title]
    if view.active is not None:
        parts.append("playing" if view.active else "idle")
    if view.track is not None and view.track.title:
        artist = f"{view.track.artist} - " if view.track.artist else ""
        parts.append(f"{artist}{view.track.title}")
    if view.image is not None:
        parts.append("artwork")
    if view.volume is not None:
        parts.append(f"{view.volume}%" + (" muted" if view.muted else ""))
    if view.shuffle is not None:
        parts.append("shuffle on" if view.shuffle else "shuffle off")
    return " | ".join(parts)


class ConsoleDisplay:
    """Logs each surface's view, only when it changes."""

    def __init__(self, label: str) -> None:
        self.label = label
        self._last: View | None = None

    def render(self, view: View) -> None:
        if view == self._last:
            return
        self._last = view
        LOG.info("[%s] %s", self.label, describe_view(view))

    def show_ok(self) -> None:
        LOG.debug("[%s] ok", self.label)

    def show_alert(self) -> None:
        LOG.warning("[%s] command failed", self.label)


class DaemonRunner:
    def __init__(
        self,
        cfg: DaemonConfig,
        session: SessionManager,
        address: str | None = None,
        device_id: str | None = None,
    ) -> None:
        self.cfg = cfg
        self.session = session
        self.address = address
        self.device_id = device_id
        self.service = ControlService(session)
        self.deck = self._build_deck()
        self.router = CommandRouter(
            deck=self.deck,
            policy=CommandPolicy(dedupe_window_s=cfg.dedupe_window_s),
        )

    def _build_deck(self) -> Deck:
        interval = self.cfg.poll_interval_s
        return Deck(
            play_pause=PlayPauseSurface(
                self.service,
                ConsoleDisplay("play"),
                fetch_asset=ImageFetcher(timeout_s=self.cfg.control_timeout_s),
                poll_interval_s=interval,
            ),
            next_track=TrackSkipSurface(self.service, ConsoleDisplay("next"), "next"),
            previous_track=TrackSkipSurface(self.service, ConsoleDisplay("prev"), "previous"),
            shuffle=ShuffleSurface(self.service, ConsoleDisplay("shuffle"), poll_interval_s=interval),
            volume=VolumeDialSurface(
                self.service,
                ConsoleDisplay("volume"),
                volume_step=self.cfg.volume_step,
                poll_interval_s=interval,
            ),
        )

    def run_forever(self) -> None:
        asyncio.run(self._run_async())

    async def _run_async(self) -> None:
        for surface in self.deck.surfaces:
            await surface.on_activate(self.address, self.device_id)
        device = self.service.device
        LOG.info("target device: %s", device.name if device is not None else "<none>")
        LOG.info(
            "keyboard input started (p play/pause, n next, b prev, s shuffle, "
            "u/+ up, d/- down, m mute, q quit)"
        )
        events = iter(KeyboardAdapter().events())
        try:
            while True:
                event = await asyncio.to_thread(next, events, None)
                if event is None:
                    return
                await self.router.handle_async(event)
        finally:
            for surface in self.deck.surfaces:
                await surface.on_deactivate()
            self.session.close()
