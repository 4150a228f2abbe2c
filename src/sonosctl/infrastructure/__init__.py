from .asset_fetch import ImageFetcher
from .config import DaemonConfig, RuntimeTarget, load_config
from .keyboard_adapter import KeyboardAdapter, parse_keyboard_command
from .mdns_gateway import MdnsDiscoveryGateway, MdnsService
from .sonos_gateway import SonosControlPlane, SonosSoapError, SonosSoapGateway
from .upnp_gateway import UpnpDiscoveryGateway, fetch_model_name_async

__all__ = [
    "ImageFetcher",
    "DaemonConfig",
    "RuntimeTarget",
    "load_config",
    "KeyboardAdapter",
    "parse_keyboard_command",
    "MdnsDiscoveryGateway",
    "MdnsService",
    "SonosControlPlane",
    "SonosSoapError",
    "SonosSoapGateway",
    "UpnpDiscoveryGateway",
    "fetch_model_name_async",
]
