import asyncio
from dataclasses import dataclass

from sonosctl.application.ports import DeviceDescriptor
from sonosctl.application.service import ControlService
from sonosctl.application.session import SessionManager
from sonosctl.discovery import SonosDiscovery
from sonosctl.domain.state import TrackInfo
from sonosctl.infrastructure.config import DaemonConfig, RuntimeTarget
from sonosctl.infrastructure.sonos_gateway import SonosControlPlane


def build_session(cfg: DaemonConfig) -> SessionManager:
    return SessionManager(
        discovery=SonosDiscovery(
            timeout_s=cfg.target.discover_timeout,
            describe_timeout_s=cfg.target.describe_timeout,
            ssdp_fallback=cfg.target.ssdp_fallback,
        ),
        control_plane=SonosControlPlane(timeout_s=cfg.control_timeout_s),
        address=cfg.target.ip,
        device_id=cfg.target.device_id,
    )


@dataclass
class SonosClient:
    address: str | None = None
    device_id: str | None = None
    discover_timeout_s: float = 5.0
    timeout_s: float = 3.0

    def __post_init__(self) -> None:
        cfg = DaemonConfig(
            target=RuntimeTarget(
                ip=self.address,
                device_id=self.device_id,
                discover_timeout=self.discover_timeout_s,
            ),
            control_timeout_s=self.timeout_s,
        )
        self._service = ControlService(build_session(cfg))

    def _run(self, coro):
        return asyncio.run(coro)

    def connect(self) -> bool:
        return self._run(self._service.initialize(self.address, self.device_id))

    def discover(self) -> list[DeviceDescriptor]:
        return self._run(self._service.discover())

    def play_pause(self) -> bool:
        return self._run(self._service.toggle_play_pause())

    def next_track(self) -> bool:
        return self._run(self._service.next_track())

    def previous_track(self) -> bool:
        return self._run(self._service.previous_track())

    def play_state(self) -> str:
        return self._run(self._service.get_play_state())

    def get_volume(self) -> int:
        return self._run(self._service.get_volume())

    def set_volume(self, volume: int) -> bool:
        return self._run(self._service.set_volume(volume))

    def adjust_volume(self, delta: int) -> int:
        return self._run(self._service.adjust_volume(delta))

    def toggle_mute(self) -> bool:
        return self._run(self._service.toggle_mute())

    def is_muted(self) -> bool:
        return self._run(self._service.get_mute())

    def shuffle_enabled(self) -> bool:
        return self._run(self._service.get_shuffle())

    def toggle_shuffle(self) -> bool:
        return self._run(self._service.toggle_shuffle())

    def current_track(self) -> TrackInfo | None:
        return self._run(self._service.get_current_track())
