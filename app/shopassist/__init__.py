"""Client-side assistant layer for the storefront: sessions, transport, realtime and voice."""

from .controller import AssistantSession
from .errors import (
    ChannelError,
    ClientInputError,
    DeviceError,
    NetworkError,
    ShopAssistError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "AssistantSession",
    "ChannelError",
    "ClientInputError",
    "DeviceError",
    "NetworkError",
    "ShopAssistError",
    "TransportError",
]
