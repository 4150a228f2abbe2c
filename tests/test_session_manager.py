import asyncio

from sonosctl.application.ports import DeviceDescriptor, DeviceHandle
from sonosctl.application.session import SessionManager


class FakeDiscovery:
    def __init__(self, devices=None, error=None):
        self.devices = devices or []
        self.error = error
        self.calls = 0

    async def discover_async(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.devices)


class FakeControlPlane:
    def __init__(self, registries=None, failing=()):
        self.registries = registries or {}
        self.failing = set(failing)
        self.calls = []

    async def connect_async(self, address):
        self.calls.append(address)
        if address in self.failing:
            raise OSError(f"unreachable {address}")
        return list(self.registries.get(address, []))


def _handle(uuid, name="Room", address="10.0.0.2"):
    return DeviceHandle(uuid=uuid, name=name, address=address, port=object())


def _descriptor(uuid, ip):
    return DeviceDescriptor(uuid=uuid, name=uuid, ip=ip)


def test_initialize_fails_when_discovery_finds_nothing() -> None:
    discovery = FakeDiscovery([])
    plane = FakeControlPlane()
    session = SessionManager(discovery, plane)

    result = asyncio.run(session.initialize())

    assert result.ok is False
    assert session.initialized is False
    assert session.device is None
    assert plane.calls == []


def test_initialize_is_idempotent_when_bound() -> None:
    kitchen = _handle("RINCON_A", "Kitchen")
    discovery = FakeDiscovery([_descriptor("RINCON_A", "10.0.0.2")])
    plane = FakeControlPlane({"10.0.0.2": [kitchen]})
    session = SessionManager(discovery, plane)

    async def scenario():
        first = await session.initialize()
        second = await session.initialize()
        third = await session.initialize(device_id="RINCON_A")
        return first, second, third

    first, second, third = asyncio.run(scenario())
    assert first.ok and second.ok and third.ok
    assert second.value is kitchen
    assert discovery.calls == 1
    assert plane.calls == ["10.0.0.2"]


def test_initialize_with_address_skips_discovery() -> None:
    discovery = FakeDiscovery([_descriptor("RINCON_A", "10.0.0.2")])
    plane = FakeControlPlane({"10.0.0.9": [_handle("RINCON_B", address="10.0.0.9")]})
    session = SessionManager(discovery, plane)

    result = asyncio.run(session.initialize(address="10.0.0.9"))

    assert result.ok
    assert result.value.uuid == "RINCON_B"
    assert discovery.calls == 0


def test_initialize_picks_descriptor_and_device_matching_id() -> None:
    discovery = FakeDiscovery(
        [_descriptor("RINCON_A", "10.0.0.2"), _descriptor("RINCON_B", "10.0.0.3")]
    )
    plane = FakeControlPlane(
        {
            "10.0.0.2": [_handle("RINCON_B", address="10.0.0.3"), _handle("RINCON_A")],
            "10.0.0.3": [_handle("RINCON_B", address="10.0.0.3")],
        }
    )
    session = SessionManager(discovery, plane)

    result = asyncio.run(session.initialize(device_id="RINCON_A"))

    assert plane.calls == ["10.0.0.2"]
    assert result.ok
    assert result.value.uuid == "RINCON_A"


def test_initialize_with_unmatched_id_uses_first_discovered() -> None:
    discovery = FakeDiscovery(
        [_descriptor("RINCON_A", "10.0.0.2"), _descriptor("RINCON_B", "10.0.0.3")]
    )
    plane = FakeControlPlane({"10.0.0.2": [_handle("RINCON_A"), _handle("RINCON_B")]})
    session = SessionManager(discovery, plane)

    result = asyncio.run(session.initialize(device_id="RINCON_Z"))

    assert plane.calls == ["10.0.0.2"]
    assert result.ok
    assert result.value.uuid == "RINCON_A"


def test_initialize_selects_registry_entry_matching_id() -> None:
    discovery = FakeDiscovery([_descriptor("RINCON_B", "10.0.0.3")])
    plane = FakeControlPlane(
        {"10.0.0.3": [_handle("RINCON_A"), _handle("RINCON_B", address="10.0.0.3")]}
    )
    session = SessionManager(discovery, plane)

    result = asyncio.run(session.initialize(device_id="RINCON_B"))

    assert result.ok
    assert session.device.uuid == "RINCON_B"
    assert [d.uuid for d in session.devices()] == ["RINCON_A", "RINCON_B"]


def test_initialize_reselects_from_registry_without_discovery() -> None:
    a = _handle("RINCON_A", "Kitchen")
    b = _handle("RINCON_B", "Office", "10.0.0.3")
    discovery = FakeDiscovery([_descriptor("RINCON_A", "10.0.0.2")])
    plane = FakeControlPlane({"10.0.0.2": [a, b]})
    session = SessionManager(discovery, plane)

    async def scenario():
        await session.initialize()
        return await session.initialize(device_id="RINCON_B")

    result = asyncio.run(scenario())
    assert result.ok
    assert session.device is b
    assert discovery.calls == 1
    assert plane.calls == ["10.0.0.2"]


def test_reselect_unknown_id_keeps_current_binding() -> None:
    a = _handle("RINCON_A", "Kitchen")
    plane = FakeControlPlane({"10.0.0.2": [a]})
    session = SessionManager(FakeDiscovery(), plane)

    async def scenario():
        await session.initialize(address="10.0.0.2")
        return await session.select_device("RINCON_MISSING")

    result = asyncio.run(scenario())
    assert result.ok is False
    assert "RINCON_MISSING" in result.reason
    assert session.device is a
    assert session.initialized is True


def test_connection_failure_leaves_session_uninitialized() -> None:
    plane = FakeControlPlane(failing={"10.0.0.2"})
    session = SessionManager(FakeDiscovery(), plane)

    result = asyncio.run(session.initialize(address="10.0.0.2"))

    assert result.ok is False
    assert session.initialized is False
    assert session.devices() == []


def test_connection_with_zero_devices_fails() -> None:
    plane = FakeControlPlane({"10.0.0.2": []})
    session = SessionManager(FakeDiscovery(), plane)

    result = asyncio.run(session.initialize(address="10.0.0.2"))

    assert result.ok is False
    assert session.initialized is False


def test_discovery_error_is_converted_to_failure() -> None:
    session = SessionManager(FakeDiscovery(error=OSError("no multicast")), FakeControlPlane())

    result = asyncio.run(session.initialize())

    assert result.ok is False
    assert "no multicast" in result.reason


def test_ensure_initialized_reuses_last_known_address() -> None:
    discovery = FakeDiscovery([_descriptor("RINCON_A", "10.0.0.2")])
    plane = FakeControlPlane({"10.0.0.2": [_handle("RINCON_A")]})
    session = SessionManager(discovery, plane)

    async def scenario():
        await session.initialize()
        session.close()
        return await session.ensure_initialized()

    result = asyncio.run(scenario())
    assert result.ok
    assert discovery.calls == 1
    assert plane.calls == ["10.0.0.2", "10.0.0.2"]


def test_stale_known_address_falls_back_to_discovery() -> None:
    discovery = FakeDiscovery([_descriptor("RINCON_A", "10.0.0.7")])
    plane = FakeControlPlane(
        {"10.0.0.7": [_handle("RINCON_A", address="10.0.0.7")]}, failing={"10.0.0.2"}
    )
    session = SessionManager(discovery, plane, address="10.0.0.2")

    result = asyncio.run(session.ensure_initialized())

    assert result.ok
    assert plane.calls == ["10.0.0.2", "10.0.0.7"]
    assert discovery.calls == 1


def test_preferred_device_id_survives_auto_recovery() -> None:
    a = _handle("RINCON_A")
    b = _handle("RINCON_B", address="10.0.0.3")
    plane = FakeControlPlane({"10.0.0.2": [a, b]})
    session = SessionManager(FakeDiscovery(), plane, address="10.0.0.2", device_id="RINCON_B")

    result = asyncio.run(session.ensure_initialized())

    assert result.ok
    assert session.device is b


def test_concurrent_initialize_connects_once() -> None:
    class SlowPlane(FakeControlPlane):
        async def connect_async(self, address):
            await asyncio.sleep(0.01)
            return await super().connect_async(address)

    plane = SlowPlane({"10.0.0.2": [_handle("RINCON_A")]})
    session = SessionManager(FakeDiscovery(), plane, address="10.0.0.2")

    async def scenario():
        return await asyncio.gather(session.ensure_initialized(), session.ensure_initialized())

    results = asyncio.run(scenario())
    assert all(r.ok for r in results)
    assert plane.calls == ["10.0.0.2"]
