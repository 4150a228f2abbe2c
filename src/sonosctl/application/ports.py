from dataclasses import dataclass
from typing import Protocol

from sonosctl.domain.state import TrackInfo


@dataclass(frozen=True)
class DeviceDescriptor:
    uuid: str
    name: str
    ip: str
    model: str | None = None


class DeviceControlPort(Protocol):
    async def toggle_playback_async(self) -> None:
        ...

    async def next_async(self) -> None:
        ...

    async def previous_async(self) -> None:
        ...

    async def get_transport_info_async(self) -> str:
        ...

    async def get_volume_async(self) -> int:
        ...

    async def set_volume_async(self, volume: int) -> None:
        ...

    async def get_mute_async(self) -> bool:
        ...

    async def set_mute_async(self, muted: bool) -> None:
        ...

    async def get_transport_settings_async(self) -> str:
        ...

    async def set_play_mode_async(self, mode: str) -> None:
        ...

    async def get_position_info_async(self) -> TrackInfo | None:
        ...


@dataclass(frozen=True)
class DeviceHandle:
    uuid: str
    name: str
    address: str
    port: DeviceControlPort


class DiscoveryPort(Protocol):
    def discover(self, timeout_s: float) -> list[DeviceDescriptor]:
        ...


class AsyncDiscoveryPort(Protocol):
    async def discover_async(self) -> list[DeviceDescriptor]:
        ...


class ControlPlane(Protocol):
    async def connect_async(self, address: str) -> list[DeviceHandle]:
        ...


class AssetFetcher(Protocol):
    async def __call__(self, url: str) -> str | None:
        ...
