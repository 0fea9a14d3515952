from __future__ import annotations

from .client import ClientExt
from .httpx_client import HttpxClient
from .requests_client import RequestsClient

__all__ = ["ClientExt", "HttpxClient", "RequestsClient"]
