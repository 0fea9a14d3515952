"""
Plumbing shared by the blocking and the async clients.
"""
from __future__ import annotations

import inspect
import io
import logging
import typing

import httpx
from typing_extensions import Protocol

from .config import ClientConfig, resolve_config
from .exceptions import PayloadError
from .multipart import HeaderTypes, to_headers

logger = logging.getLogger(__name__)

METHODS = (
    "GET",
    "POST",
    "PUT",
    "DELETE",
    "PATCH",
    "CONNECT",
    "HEAD",
    "OPTIONS",
    "TRACE",
)

URLTypes = typing.Union[str, httpx.URL]

HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2", 30: "HTTP/3"}


class Reader(Protocol):
    def read(self, size: int = ...) -> typing.Any:
        ...


def body_length(reader: Reader) -> typing.Optional[int]:
    """
    Number of bytes left in `reader`, None when it can't be known up front
    """
    if hasattr(reader, "__len__"):
        return len(reader)  # type: ignore
    if isinstance(reader, io.BytesIO):
        return reader.getbuffer().nbytes - reader.tell()
    return None


def iter_reader(reader: Reader, chunk_size: int) -> typing.Iterator[bytes]:
    while True:
        try:
            chunk = reader.read(chunk_size)
        except OSError as exc:
            raise PayloadError(str(exc)) from exc
        if not chunk:
            break
        yield chunk


async def aiter_reader(reader: Reader, chunk_size: int) -> typing.AsyncIterator[bytes]:
    if hasattr(reader, "__aiter__"):
        async for chunk in reader:  # type: ignore
            yield chunk
        return

    while True:
        try:
            chunk = reader.read(chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
        except OSError as exc:
            raise PayloadError(str(exc)) from exc
        if not chunk:
            break
        yield chunk


def merge_headers(defaults: httpx.Headers, headers: HeaderTypes) -> httpx.Headers:
    """
    Headers of the request win, defaults fill in the ones it doesn't set
    """
    request_headers = to_headers(headers)
    present = {key.lower() for key, _ in request_headers.raw}
    return httpx.Headers(
        list(request_headers.raw)
        + [(key, value) for key, value in defaults.raw if key.lower() not in present]
    )


ClientType = typing.TypeVar("ClientType")
ClientBaseType = typing.TypeVar("ClientBaseType", bound="ClientBase")


class ClientBase(typing.Generic[ClientType]):
    """
    Default headers, configuration and the wrapped backend client
    """

    def __init__(
        self,
        headers: HeaderTypes = None,
        config: typing.Optional[ClientConfig] = None,
        *,
        client: typing.Optional[ClientType] = None,
    ) -> None:
        self.config = resolve_config(config)
        self.headers = httpx.Headers(to_headers(headers))
        self.client: ClientType = (
            self.create_client(self.config) if client is None else client
        )

    @classmethod
    def with_client(
        cls: typing.Type[ClientBaseType],
        client: typing.Any,
        headers: HeaderTypes = None,
        config: typing.Optional[ClientConfig] = None,
    ) -> ClientBaseType:
        """
        Wrap an already configured backend client
        """
        return cls(headers, config, client=client)

    def create_client(self, config: ClientConfig) -> ClientType:
        raise NotImplementedError()

    def prepare_headers(
        self, headers: HeaderTypes, length: typing.Optional[int]
    ) -> httpx.Headers:
        merged = merge_headers(self.headers, headers)
        if "user-agent" not in merged:
            merged["User-Agent"] = self.config["user_agent"]
        if length and "content-length" not in merged:
            merged["Content-Length"] = str(length)
        return merged

    @staticmethod
    def log_request(method: str, url: URLTypes, length: typing.Optional[int]) -> None:
        logger.debug(
            "%s %s (%s)",
            method,
            url,
            "streamed body" if length is None else f"{length} bytes",
        )

    @staticmethod
    def log_response(method: str, url: URLTypes, status_code: int) -> None:
        logger.debug("%s %s -> %d", method, url, status_code)
