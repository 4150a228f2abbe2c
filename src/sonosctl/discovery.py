import asyncio
import dataclasses
import logging
from typing import List

from sonosctl.application.ports import DeviceDescriptor
from sonosctl.infrastructure.mdns_gateway import MdnsDiscoveryGateway
from sonosctl.infrastructure.upnp_gateway import UpnpDiscoveryGateway, fetch_model_name_async

LOG = logging.getLogger(__name__)


class SonosDiscovery:
    """Time-boxed mDNS browse with an SSDP fallback and best-effort model enrichment."""

    def __init__(
        self,
        timeout_s: float = 5.0,
        describe_timeout_s: float = 3.0,
        ssdp_fallback: bool = True,
    ) -> None:
        self.timeout_s = timeout_s
        self.describe_timeout_s = describe_timeout_s
        self.ssdp_fallback = ssdp_fallback

    async def discover_async(self) -> list[DeviceDescriptor]:
        raw = await asyncio.to_thread(MdnsDiscoveryGateway().discover, self.timeout_s)
        if not raw and self.ssdp_fallback:
            LOG.debug("mDNS found nothing, falling back to SSDP")
            raw = await asyncio.to_thread(UpnpDiscoveryGateway().discover, self.timeout_s)

        seen: set[str] = set()
        unique: list[DeviceDescriptor] = []
        for device in raw:
            if device.uuid in seen:
                continue
            seen.add(device.uuid)
            unique.append(device)

        enriched = await asyncio.gather(*(self._enrich(d) for d in unique))
        for device in enriched:
            LOG.info("discovered Sonos %s at %s", device.name, device.ip)
        LOG.info("discovery complete: found %d device(s)", len(enriched))
        return list(enriched)

    async def _enrich(self, device: DeviceDescriptor) -> DeviceDescriptor:
        model = await fetch_model_name_async(device.ip, timeout_s=self.describe_timeout_s)
        if not model:
            return device
        return dataclasses.replace(device, model=model, name=f"{device.name} ({model})")


def discover(
    timeout_s: float = 5.0, describe_timeout_s: float = 3.0
) -> List[DeviceDescriptor]:
    return asyncio.run(
        SonosDiscovery(timeout_s=timeout_s, describe_timeout_s=describe_timeout_s).discover_async()
    )
