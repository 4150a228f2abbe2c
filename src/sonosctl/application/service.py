from sonosctl.application.ports import DeviceDescriptor, DeviceHandle
from sonosctl.application.session import SessionManager
from sonosctl.domain.state import PlayState, TrackInfo


class ControlService:
    """UI-facing view of the session: failures become neutral display values."""

    def __init__(self, session: SessionManager) -> None:
        self.session = session

    @property
    def device(self) -> DeviceHandle | None:
        return self.session.device

    async def initialize(self, address: str | None = None, device_id: str | None = None) -> bool:
        return (await self.session.initialize(address, device_id)).ok

    async def discover(self) -> list[DeviceDescriptor]:
        return (await self.session.discover()).unwrap_or([])

    async def select_device(self, device_id: str) -> bool:
        return (await self.session.select_device(device_id)).ok

    async def toggle_play_pause(self) -> bool:
        return (await self.session.toggle_play_pause()).ok

    async def next_track(self) -> bool:
        return (await self.session.next_track()).ok

    async def previous_track(self) -> bool:
        return (await self.session.previous_track()).ok

    async def get_play_state(self) -> str:
        return (await self.session.get_play_state()).unwrap_or(PlayState.STOPPED).value

    async def get_volume(self) -> int:
        return (await self.session.get_volume()).unwrap_or(0)

    async def set_volume(self, volume: float) -> bool:
        return (await self.session.set_volume(volume)).ok

    async def adjust_volume(self, delta: float) -> int:
        return (await self.session.adjust_volume(delta)).unwrap_or(0)

    async def step_volume(self, delta: float) -> int | None:
        """Like adjust_volume, but ``None`` when the device did not confirm a level."""
        result = await self.session.adjust_volume(delta)
        return result.value if result.ok else None

    async def toggle_mute(self) -> bool:
        return (await self.session.toggle_mute()).ok

    async def get_mute(self) -> bool:
        return (await self.session.get_mute()).unwrap_or(False)

    async def get_shuffle(self) -> bool:
        return (await self.session.get_shuffle()).unwrap_or(False)

    async def toggle_shuffle(self) -> bool:
        return (await self.session.toggle_shuffle()).ok

    async def get_current_track(self) -> TrackInfo | None:
        return (await self.session.get_current_track()).unwrap_or(None)
