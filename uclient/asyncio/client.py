from __future__ import annotations

import abc
import io
import typing

from ..client import ClientBase, ClientType, Reader, URLTypes
from ..form import FormData
from ..multipart import HeaderTypes, to_headers
from ..responses import Response


class AsyncClientExt(ClientBase[ClientType], abc.ABC):
    """
    Async HTTP client interface, the twin of `uclient.blocking.ClientExt`.
    """

    async def get(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("GET", url, text, headers)

    async def post(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("POST", url, text, headers)

    async def put(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("PUT", url, text, headers)

    async def delete(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("DELETE", url, text, headers)

    async def patch(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("PATCH", url, text, headers)

    async def connect(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("CONNECT", url, text, headers)

    async def head(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("HEAD", url, text, headers)

    async def options(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("OPTIONS", url, text, headers)

    async def trace(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request("TRACE", url, text, headers)

    async def request(
        self, method: str, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return await self.request_bytes(method, url, text.encode("utf-8"), headers)

    async def request_bytes(
        self, method: str, url: URLTypes, content: bytes, headers: HeaderTypes = None
    ) -> Response:
        return await self.request_reader(method, url, io.BytesIO(content), headers)

    async def request_form(
        self, method: str, url: URLTypes, form: FormData, headers: HeaderTypes = None
    ) -> Response:
        """
        Send `form` as a streamed `multipart/form-data` body, files are read
        with aiofiles
        """
        stream = await form.into_async_form_stream(
            chunk_size=self.config["chunk_size"]
        )
        form_headers = to_headers(headers).copy()
        form_headers.update(stream.headers)
        async with stream.reader:
            return await self.request_reader(method, url, stream.reader, form_headers)

    @abc.abstractmethod
    async def request_reader(
        self,
        method: str,
        url: URLTypes,
        reader: Reader,
        headers: HeaderTypes = None,
    ) -> Response:
        raise NotImplementedError()

    async def aclose(self) -> None:
        await typing.cast(typing.Any, self.client).aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()
