"""Device session: discovery, lazy binding and every control/query call.

One ``SessionManager`` is constructed per process and shared by reference with
all surfaces, so selecting another speaker from one surface is seen by all of
them. Every operation returns a ``Result``; transport errors never escape.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from sonosctl.application.ports import (
    AsyncDiscoveryPort,
    ControlPlane,
    DeviceControlPort,
    DeviceDescriptor,
    DeviceHandle,
)
from sonosctl.domain.playmode import PlayMode
from sonosctl.domain.result import Failure, Ok, Result
from sonosctl.domain.state import PlayState, TrackInfo

LOG = logging.getLogger(__name__)
T = TypeVar("T")


def clamp_volume(value: float) -> int:
    return max(0, min(100, int(round(value))))


@dataclass(frozen=True)
class SessionState:
    device: DeviceHandle | None = None
    registry: tuple[DeviceHandle, ...] = ()

    @property
    def initialized(self) -> bool:
        return self.device is not None


class SessionManager:
    def __init__(
        self,
        discovery: AsyncDiscoveryPort,
        control_plane: ControlPlane,
        address: str | None = None,
        device_id: str | None = None,
    ) -> None:
        self.discovery = discovery
        self.control_plane = control_plane
        self._state = SessionState()
        self._known_address = address
        self._preferred_device_id = device_id
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def device(self) -> DeviceHandle | None:
        return self._state.device

    def devices(self) -> list[DeviceHandle]:
        return list(self._state.registry)

    async def discover(self) -> Result[list[DeviceDescriptor]]:
        try:
            return Ok(await self.discovery.discover_async())
        except Exception as exc:
            LOG.error("Sonos discovery failed: %s", exc)
            return Failure(f"discovery failed: {exc}")

    async def initialize(
        self, address: str | None = None, device_id: str | None = None
    ) -> Result[DeviceHandle]:
        async with self._init_lock:
            device = self._state.device
            if device is not None:
                if device_id and device.uuid != device_id:
                    return self._select_locked(device_id)
                return Ok(device)
            return await self._bind(address, device_id)

    async def ensure_initialized(self) -> Result[DeviceHandle]:
        device = self._state.device
        if device is not None:
            return Ok(device)
        return await self.initialize()

    async def select_device(self, device_id: str) -> Result[DeviceHandle]:
        async with self._init_lock:
            return self._select_locked(device_id)

    def close(self) -> None:
        self._state = SessionState()
        LOG.debug("session closed")

    def _select_locked(self, device_id: str) -> Result[DeviceHandle]:
        state = self._state
        for candidate in state.registry:
            if candidate.uuid == device_id:
                self._state = SessionState(device=candidate, registry=state.registry)
                LOG.info("selected Sonos device: %s", candidate.name)
                return Ok(candidate)
        LOG.error("Sonos device %s is not in the current registry", device_id)
        return Failure(f"unknown device: {device_id}")

    async def _bind(self, address: str | None, device_id: str | None) -> Result[DeviceHandle]:
        device_id = device_id or self._preferred_device_id
        if address is None and self._known_address is not None:
            result = await self._connect(self._known_address, device_id)
            if result.ok:
                return result
            LOG.info("last known address %s unreachable, rediscovering", self._known_address)
            self._known_address = None

        if address is None:
            LOG.info("no address provided, discovering via mDNS")
            found = await self.discover()
            if not found.ok:
                return found
            descriptors = found.value
            target = None
            if device_id:
                target = next((d for d in descriptors if d.uuid == device_id), None)
            target = target or (descriptors[0] if descriptors else None)
            if target is None:
                LOG.error("no Sonos devices found via discovery")
                return Failure("no devices discovered")
            address = target.ip

        return await self._connect(address, device_id)

    async def _connect(self, address: str, device_id: str | None) -> Result[DeviceHandle]:
        try:
            registry = await self.control_plane.connect_async(address)
        except Exception as exc:
            LOG.error("failed to initialize Sonos at %s: %s", address, exc)
            return Failure(f"connection to {address} failed: {exc}")
        if not registry:
            LOG.error("no Sonos devices found at %s", address)
            return Failure(f"no devices at {address}")

        device = None
        if device_id:
            device = next((d for d in registry if d.uuid == device_id), None)
        device = device or registry[0]
        # Handle and registry are replaced in one assignment.
        self._state = SessionState(device=device, registry=tuple(registry))
        self._known_address = address
        if device_id:
            self._preferred_device_id = device_id
        LOG.info("connected to Sonos device: %s", device.name)
        return Ok(device)

    async def _call(
        self, label: str, op: Callable[[DeviceControlPort], Awaitable[T]]
    ) -> Result[T]:
        ready = await self.ensure_initialized()
        if not ready.ok:
            return ready
        try:
            return Ok(await op(ready.value.port))
        except Exception as exc:
            LOG.error("failed to %s: %s", label, exc)
            return Failure(f"{label} failed: {exc}")

    async def toggle_play_pause(self) -> Result[None]:
        return await self._call("toggle playback", lambda p: p.toggle_playback_async())

    async def next_track(self) -> Result[None]:
        return await self._call("skip to next track", lambda p: p.next_async())

    async def previous_track(self) -> Result[None]:
        return await self._call("skip to previous track", lambda p: p.previous_async())

    async def get_play_state(self) -> Result[PlayState]:
        async def _op(port: DeviceControlPort) -> PlayState:
            return PlayState.from_transport(await port.get_transport_info_async())

        return await self._call("get transport state", _op)

    async def get_volume(self) -> Result[int]:
        async def _op(port: DeviceControlPort) -> int:
            return clamp_volume(await port.get_volume_async())

        return await self._call("get volume", _op)

    async def set_volume(self, volume: float) -> Result[int]:
        safe = clamp_volume(volume)

        async def _op(port: DeviceControlPort) -> int:
            await port.set_volume_async(safe)
            return safe

        return await self._call("set volume", _op)

    async def adjust_volume(self, delta: float) -> Result[int]:
        current = await self.get_volume()
        if not current.ok:
            return current
        target = clamp_volume(current.value + delta)
        if target == current.value:
            return current
        written = await self.set_volume(target)
        if not written.ok:
            return Failure(written.reason, fallback=current.value)
        return written

    async def toggle_mute(self) -> Result[bool]:
        async def _op(port: DeviceControlPort) -> bool:
            muted = not bool(await port.get_mute_async())
            await port.set_mute_async(muted)
            return muted

        return await self._call("toggle mute", _op)

    async def get_mute(self) -> Result[bool]:
        async def _op(port: DeviceControlPort) -> bool:
            return bool(await port.get_mute_async())

        return await self._call("get mute state", _op)

    async def get_play_mode(self) -> Result[PlayMode]:
        async def _op(port: DeviceControlPort) -> PlayMode:
            return PlayMode.parse(await port.get_transport_settings_async())

        return await self._call("get play mode", _op)

    async def get_shuffle(self) -> Result[bool]:
        mode = await self.get_play_mode()
        if not mode.ok:
            return mode
        return Ok(mode.value.is_shuffle)

    async def toggle_shuffle(self) -> Result[PlayMode]:
        async def _op(port: DeviceControlPort) -> PlayMode:
            new_mode = PlayMode.parse(await port.get_transport_settings_async()).toggled_shuffle()
            await port.set_play_mode_async(new_mode.value)
            return new_mode

        return await self._call("toggle shuffle", _op)

    async def get_current_track(self) -> Result[TrackInfo | None]:
        return await self._call("get current track", lambda p: p.get_position_info_async())
