import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

from sonosctl.application.ports import AssetFetcher, DeviceDescriptor
from sonosctl.application.reconciler import Display, StateReconciler, View
from sonosctl.application.service import ControlService

LOG = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 5.0


class Surface:
    """One button or dial bound to the shared control service.

    Subclasses declare their commands in ``_commands`` and which state their
    reconciler watches. ``acknowledge`` surfaces flash ok/alert after a command.
    """

    acknowledge = True

    def __init__(
        self,
        service: ControlService,
        display: Display,
        reconciler: StateReconciler | None = None,
        poll_interval_s: float | None = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        self.service = service
        self.display = display
        self.reconciler = reconciler
        self.poll_interval_s = poll_interval_s
        self._timer: asyncio.Task | None = None
        self._deactivated = False

    def _commands(self) -> dict[str, Callable[..., Awaitable[bool]]]:
        return {}

    async def on_activate(self, address: str | None = None, device_id: str | None = None) -> bool:
        self._deactivated = False
        if self.reconciler is not None:
            self.reconciler.open()
        ok = await self.service.initialize(address, device_id)
        if not ok:
            LOG.error("%s: initialization failed, will retry on next use", type(self).__name__)
        await self.refresh()
        if self.reconciler is not None and self.poll_interval_s and self._timer is None:
            self._timer = asyncio.create_task(self._run_timer())
        return ok

    async def on_command(self, name: str, **kwargs) -> bool:
        handler = self._commands().get(name)
        if handler is None:
            LOG.debug("%s: ignored unknown command %s", type(self).__name__, name)
            return False
        ok = await handler(**kwargs)
        if self.acknowledge and not self._deactivated:
            if ok:
                self.display.show_ok()
            else:
                self.display.show_alert()
        return ok

    async def on_recurring_tick(self) -> None:
        if self.reconciler is None:
            return
        view = await self.reconciler.reconcile(wait=False)
        if view is not None:
            self.display.render(view)

    async def on_deactivate(self) -> None:
        self._deactivated = True
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        if self.reconciler is not None:
            self.reconciler.close()

    async def discover(self) -> list[DeviceDescriptor]:
        return await self.service.discover()

    async def refresh(self, volume_override: int | None = None) -> View | None:
        if self.reconciler is None:
            return None
        view = await self.reconciler.reconcile(volume_override=volume_override)
        if view is not None:
            self.display.render(view)
        return view

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_s)
            try:
                await self.on_recurring_tick()
            except Exception as exc:
                LOG.exception("recurring refresh failed: %s", exc)


class PlayPauseSurface(Surface):
    def __init__(
        self,
        service: ControlService,
        display: Display,
        fetch_asset: AssetFetcher | None = None,
        poll_interval_s: float | None = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        super().__init__(
            service,
            display,
            StateReconciler(service, fetch_asset=fetch_asset, watch_playback=True),
            poll_interval_s,
        )

    def _commands(self):
        return {"press": self._press}

    async def _press(self) -> bool:
        ok = await self.service.toggle_play_pause()
        if ok:
            await self.refresh()
        return ok


class TrackSkipSurface(Surface):
    def __init__(self, service: ControlService, display: Display, direction: str = "next") -> None:
        if direction not in {"next", "previous"}:
            raise ValueError(f"direction must be 'next' or 'previous', got {direction!r}")
        super().__init__(service, display, reconciler=None, poll_interval_s=None)
        self.direction = direction

    def _commands(self):
        return {"press": self._press}

    async def _press(self) -> bool:
        if self.direction == "next":
            return await self.service.next_track()
        return await self.service.previous_track()


class ShuffleSurface(Surface):
    def __init__(
        self,
        service: ControlService,
        display: Display,
        poll_interval_s: float | None = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        super().__init__(
            service,
            display,
            StateReconciler(service, watch_playback=False, watch_shuffle=True),
            poll_interval_s,
        )

    def _commands(self):
        return {"press": self._press}

    async def _press(self) -> bool:
        ok = await self.service.toggle_shuffle()
        if ok:
            await self.refresh()
        return ok


class VolumeDialSurface(Surface):
    acknowledge = False

    def __init__(
        self,
        service: ControlService,
        display: Display,
        volume_step: int = 2,
        poll_interval_s: float | None = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        super().__init__(
            service,
            display,
            StateReconciler(service, watch_playback=False, watch_volume=True),
            poll_interval_s,
        )
        self.volume_step = max(1, int(volume_step))

    def _commands(self):
        return {"rotate": self._rotate, "push": self._push, "touch": self._touch}

    async def _rotate(self, ticks: int = 1) -> bool:
        volume = await self.service.step_volume(int(ticks) * self.volume_step)
        if volume is None:
            await self.refresh()
            return False
        # The adjusted value is already known, skip one volume read.
        await self.refresh(volume_override=volume)
        return True

    async def _push(self) -> bool:
        ok = await self.service.toggle_mute()
        if ok:
            await self.refresh()
        return ok

    async def _touch(self) -> bool:
        ok = await self.service.toggle_play_pause()
        await self.refresh()
        return ok
