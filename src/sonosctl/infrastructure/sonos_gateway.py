import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urlparse
from xml.etree import ElementTree
from xml.sax.saxutils import escape as xml_escape

import httpx

from sonosctl.application.ports import DeviceHandle
from sonosctl.domain.state import TrackInfo

LOG = logging.getLogger(__name__)

SONOS_PORT = 1400

_SERVICES: dict[str, tuple[str, str]] = {
    "AVTransport": (
        "/MediaRenderer/AVTransport/Control",
        "urn:schemas-upnp-org:service:AVTransport:1",
    ),
    "RenderingControl": (
        "/MediaRenderer/RenderingControl/Control",
        "urn:schemas-upnp-org:service:RenderingControl:1",
    ),
    "ZoneGroupTopology": (
        "/ZoneGroupTopology/Control",
        "urn:schemas-upnp-org:service:ZoneGroupTopology:1",
    ),
}

_DIDL_NS = {
    "didl": "urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "upnp": "urn:schemas-upnp-org:metadata-1-0/upnp/",
}


class SonosSoapError(Exception):
    def __init__(self, action: str, detail: str, code: str | None = None) -> None:
        super().__init__(f"Sonos SOAP {action} failed: {detail}")
        self.action = action
        self.code = code


@dataclass(frozen=True)
class ZoneMember:
    uuid: str
    name: str
    address: str
    invisible: bool = False


def _envelope(action: str, urn: str, arguments: dict[str, str]) -> str:
    body = "".join(f"<{k}>{xml_escape(v)}</{k}>" for k, v in arguments.items())
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" '
        's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
        "<s:Body>"
        f'<u:{action} xmlns:u="{urn}">{body}</u:{action}>'
        "</s:Body>"
        "</s:Envelope>"
    )


def _parse_fault(root: ElementTree.Element) -> tuple[str | None, str] | None:
    if root.find(".//{*}Fault") is None:
        return None
    code = (root.findtext(".//{*}errorCode") or "").strip() or None
    desc = (root.findtext(".//{*}errorDescription") or "").strip()
    if not desc:
        desc = (root.findtext(".//{*}faultstring") or "").strip() or "unknown SOAP fault"
    return code, f"UPnPError {code}: {desc}" if code else desc


def _text(root: ElementTree.Element, tag: str) -> str | None:
    value = root.findtext(f".//{{*}}{tag}")
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_track_metadata(
    didl: str | None, track_uri: str | None, base_url: str
) -> TrackInfo | None:
    raw = (didl or "").strip()
    if not raw or raw == "NOT_IMPLEMENTED":
        return None
    try:
        root = ElementTree.fromstring(raw)
    except ElementTree.ParseError as exc:
        raise ValueError(f"Malformed track metadata: {exc}") from exc
    item = root.find("didl:item", _DIDL_NS)
    if item is None:
        return None

    def _field(path: str) -> str | None:
        value = item.findtext(path, namespaces=_DIDL_NS)
        return value.strip() if value and value.strip() else None

    art_url = _field("upnp:albumArtURI")
    if art_url and not art_url.lower().startswith(("http://", "https://")):
        art_url = base_url + (art_url if art_url.startswith("/") else f"/{art_url}")
    return TrackInfo(
        title=_field("dc:title"),
        artist=_field("dc:creator"),
        album=_field("upnp:album"),
        track_uri=track_uri or _field("didl:res"),
        art_url=art_url,
    )


def parse_zone_group_state(payload: str) -> list[ZoneMember]:
    try:
        root = ElementTree.fromstring(payload)
    except ElementTree.ParseError as exc:
        raise ValueError(f"Malformed zone group state: {exc}") from exc

    members: list[ZoneMember] = []
    for node in root.iter("ZoneGroupMember"):
        uuid = (node.get("UUID") or "").strip()
        host = urlparse(node.get("Location") or "").hostname
        if not uuid or not host:
            LOG.debug("zone member ignored uuid=%r location=%r", uuid, node.get("Location"))
            continue
        members.append(
            ZoneMember(
                uuid=uuid,
                name=(node.get("ZoneName") or "").strip() or uuid,
                address=host,
                invisible=node.get("Invisible") == "1",
            )
        )
    return members


@dataclass
class SonosSoapGateway:
    address: str
    port: int = SONOS_PORT
    timeout_s: float = 3.0

    def __post_init__(self) -> None:
        self.base_url = f"http://{self.address}:{self.port}"

    async def _call(
        self, service: str, action: str, arguments: dict[str, str] | None = None
    ) -> ElementTree.Element:
        control_path, urn = _SERVICES[service]
        args = {"InstanceID": "0"} if service != "ZoneGroupTopology" else {}
        args.update(arguments or {})
        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPACTION": f'"{urn}#{action}"',
        }
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            r = await client.post(
                self.base_url + control_path,
                content=_envelope(action, urn, args).encode("utf-8"),
                headers=headers,
            )
        try:
            root = ElementTree.fromstring(r.text or "")
        except ElementTree.ParseError:
            r.raise_for_status()
            raise ValueError(f"Unexpected response to {action} from {self.address}")
        fault = _parse_fault(root)
        if fault is not None:
            code, detail = fault
            LOG.debug("SOAP fault host=%s action=%s detail=%s", self.address, action, detail)
            raise SonosSoapError(action, detail, code=code)
        r.raise_for_status()
        return root

    async def get_transport_info_async(self) -> str:
        root = await self._call("AVTransport", "GetTransportInfo")
        state = _text(root, "CurrentTransportState")
        if state is None:
            raise ValueError(f"Unexpected GetTransportInfo response from {self.address}")
        return state

    async def play_async(self) -> None:
        await self._call("AVTransport", "Play", {"Speed": "1"})

    async def pause_async(self) -> None:
        await self._call("AVTransport", "Pause")

    async def toggle_playback_async(self) -> None:
        if await self.get_transport_info_async() == "PLAYING":
            await self.pause_async()
        else:
            await self.play_async()

    async def next_async(self) -> None:
        await self._call("AVTransport", "Next")

    async def previous_async(self) -> None:
        await self._call("AVTransport", "Previous")

    async def get_volume_async(self) -> int:
        root = await self._call("RenderingControl", "GetVolume", {"Channel": "Master"})
        value = _text(root, "CurrentVolume")
        if value is None:
            raise ValueError(f"Unexpected GetVolume response from {self.address}")
        return int(value)

    async def set_volume_async(self, volume: int) -> None:
        v = max(0, min(100, int(volume)))
        await self._call(
            "RenderingControl",
            "SetVolume",
            {"Channel": "Master", "DesiredVolume": str(v)},
        )

    async def get_mute_async(self) -> bool:
        root = await self._call("RenderingControl", "GetMute", {"Channel": "Master"})
        value = _text(root, "CurrentMute")
        if value is None:
            raise ValueError(f"Unexpected GetMute response from {self.address}")
        return value == "1"

    async def set_mute_async(self, muted: bool) -> None:
        await self._call(
            "RenderingControl",
            "SetMute",
            {"Channel": "Master", "DesiredMute": "1" if muted else "0"},
        )

    async def get_transport_settings_async(self) -> str:
        root = await self._call("AVTransport", "GetTransportSettings")
        mode = _text(root, "PlayMode")
        if mode is None:
            raise ValueError(f"Unexpected GetTransportSettings response from {self.address}")
        return mode

    async def set_play_mode_async(self, mode: str) -> None:
        await self._call("AVTransport", "SetPlayMode", {"NewPlayMode": mode})

    async def get_position_info_async(self) -> TrackInfo | None:
        root = await self._call("AVTransport", "GetPositionInfo")
        return parse_track_metadata(
            root.findtext(".//{*}TrackMetaData"),
            _text(root, "TrackURI"),
            self.base_url,
        )

    async def get_zone_group_members_async(self) -> list[ZoneMember]:
        root = await self._call("ZoneGroupTopology", "GetZoneGroupState")
        state = _text(root, "ZoneGroupState")
        if state is None:
            raise ValueError(f"Unexpected GetZoneGroupState response from {self.address}")
        return parse_zone_group_state(state)


class SonosControlPlane:
    """Builds device handles from the household topology seen by one speaker."""

    def __init__(self, timeout_s: float = 3.0, gateway_factory=SonosSoapGateway) -> None:
        self.timeout_s = timeout_s
        self.gateway_factory = gateway_factory

    async def connect_async(self, address: str) -> list[DeviceHandle]:
        entry = self.gateway_factory(address, timeout_s=self.timeout_s)
        members = [m for m in await entry.get_zone_group_members_async() if not m.invisible]
        # Zone topology reports IPs; the address given may be a hostname.
        host = await _resolve_host(address)
        # The speaker we were pointed at goes first so it wins the default pick.
        members.sort(key=lambda m: m.address != host)
        handles = [
            DeviceHandle(
                uuid=m.uuid,
                name=m.name,
                address=m.address,
                port=entry
                if m.address == host
                else self.gateway_factory(m.address, timeout_s=self.timeout_s),
            )
            for m in members
        ]
        LOG.debug("control plane address=%s host=%s devices=%d", address, host, len(handles))
        return handles


async def _resolve_host(address: str) -> str:
    try:
        ipaddress.ip_address(address)
        return address
    except ValueError:
        pass
    try:
        infos = await asyncio.get_running_loop().getaddrinfo(
            address, SONOS_PORT, family=socket.AF_INET, type=socket.SOCK_STREAM
        )
    except OSError as exc:
        LOG.debug("could not resolve host=%s err=%s", address, exc)
        return address
    return infos[0][4][0] if infos else address
