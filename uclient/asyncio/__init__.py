from __future__ import annotations

from .client import AsyncClientExt
from .httpx_client import AsyncHttpxClient

__all__ = ["AsyncClientExt", "AsyncHttpxClient"]
