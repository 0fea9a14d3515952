from __future__ import annotations

from .__version__ import __version__
from .config import ClientConfig
from .exceptions import (
    HttpClientError,
    HTTPStatusError,
    InvalidFile,
    MalformedNestedBoundary,
    MultipartError,
    PayloadError,
    StreamConsumed,
    UClientError,
)
from .form import FormData, FormStream, parse_form
from .multipart import (
    AsyncMultipartStream,
    FilePart,
    Multipart,
    MultipartStream,
    Node,
    Part,
    async_multipart_to_stream,
    generate_boundary,
    get_multipart_boundary,
    multipart_to_stream,
)
from .responses import Response

__all__ = [
    "__version__",
    "ClientConfig",
    "UClientError",
    "HttpClientError",
    "HTTPStatusError",
    "PayloadError",
    "MultipartError",
    "InvalidFile",
    "MalformedNestedBoundary",
    "StreamConsumed",
    "FormData",
    "FormStream",
    "parse_form",
    "Part",
    "FilePart",
    "Multipart",
    "Node",
    "MultipartStream",
    "AsyncMultipartStream",
    "generate_boundary",
    "get_multipart_boundary",
    "multipart_to_stream",
    "async_multipart_to_stream",
    "Response",
]
