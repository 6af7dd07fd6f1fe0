"""
Error taxonomy shared by every layer.

- ClientInputError: rejected before any network/device work (empty message,
  second capture, send on a closed channel, upload of a consumed recording).
- TransportError: the server answered with a non-success status.
- NetworkError: no response at all.
- DeviceError: microphone denied, missing or unsupported.
- ChannelError: realtime connection failed or dropped.

None of these are fatal to a session; the user can always retry.
"""

from __future__ import annotations
from typing import Optional


class ShopAssistError(Exception):
    """Base class for every failure the client surfaces."""


class ClientInputError(ShopAssistError, ValueError):
    pass


class TransportError(ShopAssistError):
    def __init__(self, status_code: int, detail: str = "", *, endpoint: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.endpoint = endpoint
        msg = f"HTTP error {status_code}"
        if endpoint:
            msg += f" from {endpoint}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class NetworkError(ShopAssistError):
    def __init__(self, message: str, *, endpoint: str = "", cause: Optional[BaseException] = None):
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(message)


class DeviceError(ShopAssistError):
    pass


class ChannelError(ShopAssistError):
    pass
