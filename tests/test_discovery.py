import asyncio

from sonosctl import discovery
from sonosctl.application.ports import DeviceDescriptor


def _patch_gateways(monkeypatch, mdns, ssdp, calls):
    class FakeMdns:
        def discover(self, timeout_s):
            calls.append(("mdns", timeout_s))
            return list(mdns)

    class FakeUpnp:
        def discover(self, timeout_s):
            calls.append(("ssdp", timeout_s))
            return list(ssdp)

    monkeypatch.setattr(discovery, "MdnsDiscoveryGateway", FakeMdns)
    monkeypatch.setattr(discovery, "UpnpDiscoveryGateway", FakeUpnp)


def test_discovery_enriches_names_with_model(monkeypatch) -> None:
    calls = []
    _patch_gateways(
        monkeypatch,
        [DeviceDescriptor("RINCON_A", "Kitchen", "10.0.0.2"), DeviceDescriptor("RINCON_B", "Office", "10.0.0.3")],
        [],
        calls,
    )
    models = {"10.0.0.2": "Sonos One", "10.0.0.3": None}
    seen_timeouts = []

    async def fake_model(ip, timeout_s):
        seen_timeouts.append(timeout_s)
        return models[ip]

    monkeypatch.setattr(discovery, "fetch_model_name_async", fake_model)

    found = asyncio.run(discovery.SonosDiscovery(timeout_s=1.0, describe_timeout_s=2.5).discover_async())

    assert [d.name for d in found] == ["Kitchen (Sonos One)", "Office"]
    assert found[0].model == "Sonos One"
    assert found[1].model is None
    assert seen_timeouts == [2.5, 2.5]
    assert calls == [("mdns", 1.0)]


def test_discovery_deduplicates_by_uuid(monkeypatch) -> None:
    _patch_gateways(
        monkeypatch,
        [DeviceDescriptor("RINCON_A", "Kitchen", "10.0.0.2"), DeviceDescriptor("RINCON_A", "Kitchen", "10.0.0.9")],
        [],
        [],
    )

    async def no_model(ip, timeout_s):
        return None

    monkeypatch.setattr(discovery, "fetch_model_name_async", no_model)

    found = asyncio.run(discovery.SonosDiscovery().discover_async())
    assert [(d.uuid, d.ip) for d in found] == [("RINCON_A", "10.0.0.2")]


def test_discovery_falls_back_to_ssdp_when_mdns_is_empty(monkeypatch) -> None:
    calls = []
    _patch_gateways(monkeypatch, [], [DeviceDescriptor("RINCON_C", "UPnP:10.0.0.4", "10.0.0.4")], calls)

    async def no_model(ip, timeout_s):
        return None

    monkeypatch.setattr(discovery, "fetch_model_name_async", no_model)

    found = asyncio.run(discovery.SonosDiscovery(timeout_s=0.5).discover_async())
    assert [d.uuid for d in found] == ["RINCON_C"]
    assert calls == [("mdns", 0.5), ("ssdp", 0.5)]


def test_discovery_without_fallback_returns_empty(monkeypatch) -> None:
    calls = []
    _patch_gateways(monkeypatch, [], [DeviceDescriptor("RINCON_C", "x", "10.0.0.4")], calls)

    found = asyncio.run(discovery.SonosDiscovery(ssdp_fallback=False).discover_async())
    assert found == []
    assert calls == [("mdns", 5.0)]


def test_sync_discover_wrapper(monkeypatch) -> None:
    _patch_gateways(monkeypatch, [DeviceDescriptor("RINCON_A", "Kitchen", "10.0.0.2")], [], [])

    async def model(ip, timeout_s):
        return "Era 100"

    monkeypatch.setattr(discovery, "fetch_model_name_async", model)

    found = discovery.discover(timeout_s=0.1)
    assert found[0].name == "Kitchen (Era 100)"
