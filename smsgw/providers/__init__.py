from smsgw.providers.base import OutboundMessage, SMSProvider
from smsgw.providers.manager import ProviderManager
from smsgw.providers.verimor import VerimorProvider, build_send_request

__all__ = [
    "OutboundMessage",
    "ProviderManager",
    "SMSProvider",
    "VerimorProvider",
    "build_send_request",
]
