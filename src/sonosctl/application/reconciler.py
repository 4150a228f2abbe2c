import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from sonosctl.application.ports import AssetFetcher
from sonosctl.application.service import ControlService
from sonosctl.domain.state import PlayState, TrackInfo

LOG = logging.getLogger(__name__)

MUTE_ICON = "imgs/actions/volume/mute_icon.svg"
SPEAKER_ICON = "imgs/actions/volume/speaker_icon.svg"
UNKNOWN_DEVICE = "Unknown Device"


@dataclass(frozen=True)
class View:
    title: str = UNKNOWN_DEVICE
    active: bool | None = None
    image: str | None = None
    track: TrackInfo | None = None
    volume: int | None = None
    muted: bool | None = None
    icon: str | None = None
    shuffle: bool | None = None


class Display(Protocol):
    def render(self, view: View) -> None:
        ...

    def show_ok(self) -> None:
        ...

    def show_alert(self) -> None:
        ...


@dataclass
class PlaybackSnapshot:
    track_uri: str | None = None
    track: TrackInfo | None = None
    active: bool = False
    art_url: str | None = None
    art_data: str | None = None

    def clear_track(self) -> None:
        self.track_uri = None
        self.track = None
        self.art_url = None
        self.art_data = None


class StateReconciler:
    def __init__(
        self,
        service: ControlService,
        fetch_asset: AssetFetcher | None = None,
        watch_playback: bool = True,
        watch_volume: bool = False,
        watch_shuffle: bool = False,
    ) -> None:
        self.service = service
        self.fetch_asset = fetch_asset
        self.watch_playback = watch_playback
        self.watch_volume = watch_volume
        self.watch_shuffle = watch_shuffle
        self.snapshot = PlaybackSnapshot()
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        self._closed = False
        self.snapshot = PlaybackSnapshot()

    def close(self) -> None:
        self._closed = True
        # A pass still in flight keeps writing to the snapshot it captured.
        self.snapshot = PlaybackSnapshot()

    async def reconcile(
        self, volume_override: int | None = None, wait: bool = True
    ) -> View | None:
        """Converge with the device and return the view to render.

        Returns ``None`` when the result must not be rendered: the reconciler
        was closed meanwhile, or ``wait`` is false and a pass is in flight.
        """
        if self._closed:
            return None
        if not wait and self._lock.locked():
            LOG.debug("reconciliation already in flight, skipping tick")
            return None
        async with self._lock:
            view = await self._reconcile_once(volume_override)
        if self._closed:
            LOG.debug("discarding reconciliation result for closed surface")
            return None
        return view

    async def _reconcile_once(self, volume_override: int | None) -> View:
        fields: dict = {}
        if self.watch_playback:
            await self._reconcile_playback()
            fields.update(
                active=self.snapshot.active,
                image=self.snapshot.art_data,
                track=self.snapshot.track,
            )
        if self.watch_volume:
            volume = (
                volume_override
                if volume_override is not None
                else await self.service.get_volume()
            )
            muted = await self.service.get_mute()
            fields.update(
                volume=volume,
                muted=muted,
                icon=MUTE_ICON if muted else SPEAKER_ICON,
            )
        if self.watch_shuffle:
            fields["shuffle"] = await self.service.get_shuffle()
        device = self.service.device
        return View(title=device.name if device is not None else UNKNOWN_DEVICE, **fields)

    async def _reconcile_playback(self) -> None:
        snap = self.snapshot
        state = PlayState(await self.service.get_play_state())
        snap.active = state.is_active
        if not snap.active:
            if snap.track_uri is not None or snap.art_data is not None:
                LOG.debug("playback %s, clearing cached track and artwork", state.value)
            snap.clear_track()
            return

        track = await self.service.get_current_track()
        identity = track.track_uri if track is not None else None
        snap.track = track
        if identity != snap.track_uri:
            LOG.debug("track changed from %s to %s", snap.track_uri, identity)
            snap.track_uri = identity
            snap.art_url = None
            snap.art_data = None

        # Cached art is keyed by its source URL; a failed fetch is not retried.
        art_url = track.art_url if track is not None else None
        if art_url == snap.art_url:
            return
        snap.art_url = art_url
        snap.art_data = await self._fetch(art_url) if art_url else None

    async def _fetch(self, url: str) -> str | None:
        if self.fetch_asset is None:
            return None
        try:
            return await self.fetch_asset(url)
        except Exception as exc:
            LOG.debug("artwork fetch failed url=%s err=%s", url, exc)
            return None
