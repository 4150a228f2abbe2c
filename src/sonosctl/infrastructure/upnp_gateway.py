import ipaddress
import logging
import re
import socket
import time
from typing import Iterable
from urllib.parse import urlparse

import httpx

from sonosctl.application.ports import DeviceDescriptor, DiscoveryPort
from sonosctl.infrastructure.sonos_gateway import SONOS_PORT

_SSDP_ADDR = ("239.255.255.250", 1900)
_SSDP_SEARCH_TARGET = "urn:schemas-upnp-org:device:ZonePlayer:1"
_USN_UUID_RE = re.compile(r"uuid:([^:]+)")
_MODEL_NAME_RE = re.compile(r"<modelName>\s*([^<]+?)\s*</modelName>", flags=re.IGNORECASE)
LOG = logging.getLogger(__name__)


def _parse_ssdp_headers(payload: bytes) -> dict[str, str]:
    text = payload.decode("utf-8", errors="ignore")
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    headers: dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().lower()] = value.strip()
    return headers


def _is_ipv4(host: str | None) -> bool:
    try:
        ipaddress.IPv4Address(host or "")
    except ValueError:
        return False
    return True


def _uuid_from_usn(usn: str) -> str | None:
    match = _USN_UUID_RE.search(usn or "")
    return match.group(1) if match else None


def _iter_ssdp_responses(timeout_s: float) -> Iterable[dict[str, str]]:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
        msg = "\r\n".join(
            [
                "M-SEARCH * HTTP/1.1",
                "HOST: 239.255.255.250:1900",
                'MAN: "ssdp:discover"',
                "MX: 1",
                f"ST: {_SSDP_SEARCH_TARGET}",
                "",
                "",
            ]
        ).encode("ascii")
        LOG.debug("UPnP SSDP M-SEARCH start st=%s timeout_s=%.2f", _SSDP_SEARCH_TARGET, timeout_s)
        sock.sendto(msg, _SSDP_ADDR)

        deadline = time.monotonic() + max(0.1, timeout_s)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LOG.debug("UPnP SSDP M-SEARCH finished (timeout reached)")
                return
            sock.settimeout(max(0.05, min(remaining, 0.5)))
            try:
                payload, _ = sock.recvfrom(8192)
            except TimeoutError:
                continue
            except OSError:
                LOG.debug("UPnP SSDP receive aborted due to socket error")
                return
            headers = _parse_ssdp_headers(payload)
            if headers:
                yield headers


async def fetch_model_name_async(ip: str, timeout_s: float = 3.0) -> str | None:
    url = f"http://{ip}:{SONOS_PORT}/xml/device_description.xml"
    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        LOG.debug("device description fetch failed ip=%s err=%s", ip, exc)
        return None

    match = _MODEL_NAME_RE.search(response.text or "")
    if match is None:
        LOG.debug("device description without modelName ip=%s", ip)
        return None
    return match.group(1)


class UpnpDiscoveryGateway(DiscoveryPort):
    def discover(self, timeout_s: float = 5.0) -> list[DeviceDescriptor]:
        uniq: dict[str, DeviceDescriptor] = {}
        LOG.debug(
            "UPnP discovery begin timeout_s=%.2f target=%s",
            timeout_s,
            _SSDP_SEARCH_TARGET,
        )
        for headers in _iter_ssdp_responses(timeout_s):
            uuid = _uuid_from_usn(headers.get("usn", ""))
            host = urlparse(headers.get("location", "")).hostname
            if not uuid or not _is_ipv4(host):
                LOG.debug(
                    "UPnP response ignored usn=%s location=%s",
                    headers.get("usn", ""),
                    headers.get("location", ""),
                )
                continue
            if uuid in uniq:
                continue
            uniq[uuid] = DeviceDescriptor(uuid=uuid, name=f"UPnP:{host}", ip=host)
            LOG.debug("UPnP device accepted uuid=%s host=%s", uuid, host)

        LOG.debug("UPnP discovery done found=%d", len(uniq))
        return list(uniq.values())
