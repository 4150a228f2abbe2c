import logging
import re
import time
from dataclasses import dataclass
from typing import Dict

from zeroconf import ServiceBrowser, ServiceListener, Zeroconf

from sonosctl.application.ports import DeviceDescriptor, DiscoveryPort

LOG = logging.getLogger(__name__)

SONOS_SERVICE_TYPE = "_sonos._tcp.local."
_RINCON_RE = re.compile(r"RINCON_[0-9A-F]+")


def extract_uuid(name: str, props: Dict[str, str]) -> str | None:
    uuid = (props.get("uuid") or "").strip()
    if uuid:
        return uuid
    match = _RINCON_RE.search(name)
    return match.group(0) if match else None


def extract_room_name(name: str, service_type: str, props: Dict[str, str]) -> str:
    room = (props.get("roomname") or "").strip()
    if room:
        return room
    instance = name[: -len(service_type)].rstrip(".") if name.endswith(service_type) else name
    if "@" in instance:
        room = instance.split("@", 1)[1].strip()
    return room or "Unknown"


@dataclass(frozen=True)
class MdnsService:
    uuid: str
    name: str
    address: str


class _Listener(ServiceListener):
    def __init__(self) -> None:
        self.services: list[MdnsService] = []

    def add_service(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        LOG.debug("mDNS add_service type=%s name=%s", service_type, name)
        info = zeroconf.get_service_info(service_type, name, timeout=2000)
        if not info:
            LOG.debug("mDNS ignore service name=%s reason=no_info", name)
            return

        props: Dict[str, str] = {}
        for k, v in (info.properties or {}).items():
            try:
                props[k.decode("utf-8").lower()] = v.decode("utf-8") if v is not None else ""
            except (AttributeError, UnicodeDecodeError):
                pass

        uuid = extract_uuid(name, props)
        if uuid is None:
            LOG.debug("mDNS ignore service name=%s reason=no_uuid", name)
            return

        addr = None
        for a in info.addresses or []:
            if len(a) == 4:
                addr = ".".join(str(b) for b in a)
                break
        if addr is None:
            LOG.debug("mDNS ignore service name=%s reason=no_ipv4_address", name)
            return

        svc = MdnsService(
            uuid=uuid,
            name=extract_room_name(name, service_type, props),
            address=addr,
        )
        LOG.debug("mDNS accept service uuid=%s name=%s addr=%s", svc.uuid, svc.name, addr)
        self.services.append(svc)

    def update_service(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        return None

    def remove_service(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        return None


class MdnsDiscoveryGateway(DiscoveryPort):
    def __init__(self, service_type: str = SONOS_SERVICE_TYPE) -> None:
        self.service_type = service_type

    def discover(self, timeout_s: float = 5.0) -> list[DeviceDescriptor]:
        LOG.debug(
            "mDNS discovery begin service_type=%s timeout_s=%.2f",
            self.service_type,
            timeout_s,
        )
        zc = Zeroconf()
        browser = None
        try:
            listener = _Listener()
            browser = ServiceBrowser(zc, self.service_type, listener)
            time.sleep(timeout_s)
        finally:
            if browser is not None:
                cancel = getattr(browser, "cancel", None)
                if callable(cancel):
                    cancel()
            zc.close()

        seen: set[str] = set()
        found: list[DeviceDescriptor] = []
        for s in list(listener.services):
            if s.uuid in seen:
                continue
            seen.add(s.uuid)
            found.append(DeviceDescriptor(uuid=s.uuid, name=s.name, ip=s.address))
        LOG.debug(
            "mDNS discovery done raw_services=%d unique_devices=%d",
            len(listener.services),
            len(found),
        )
        return found
