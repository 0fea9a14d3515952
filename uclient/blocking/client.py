from __future__ import annotations

import abc
import io
import typing

from ..client import ClientBase, ClientType, Reader, URLTypes
from ..form import FormData
from ..multipart import HeaderTypes, to_headers
from ..responses import Response


class ClientExt(ClientBase[ClientType], abc.ABC):
    """
    Blocking HTTP client interface.

    Backends only implement `create_client` and `request_reader`, everything
    else funnels into `request_reader`.
    """

    def get(self, url: URLTypes, text: str = "", headers: HeaderTypes = None) -> Response:
        return self.request("GET", url, text, headers)

    def post(self, url: URLTypes, text: str = "", headers: HeaderTypes = None) -> Response:
        return self.request("POST", url, text, headers)

    def put(self, url: URLTypes, text: str = "", headers: HeaderTypes = None) -> Response:
        return self.request("PUT", url, text, headers)

    def delete(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return self.request("DELETE", url, text, headers)

    def patch(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return self.request("PATCH", url, text, headers)

    def connect(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return self.request("CONNECT", url, text, headers)

    def head(self, url: URLTypes, text: str = "", headers: HeaderTypes = None) -> Response:
        return self.request("HEAD", url, text, headers)

    def options(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return self.request("OPTIONS", url, text, headers)

    def trace(
        self, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return self.request("TRACE", url, text, headers)

    def request(
        self, method: str, url: URLTypes, text: str = "", headers: HeaderTypes = None
    ) -> Response:
        return self.request_bytes(method, url, text.encode("utf-8"), headers)

    def request_bytes(
        self, method: str, url: URLTypes, content: bytes, headers: HeaderTypes = None
    ) -> Response:
        return self.request_reader(method, url, io.BytesIO(content), headers)

    def request_form(
        self, method: str, url: URLTypes, form: FormData, headers: HeaderTypes = None
    ) -> Response:
        """
        Send `form` as a streamed `multipart/form-data` body
        """
        stream = form.into_form_stream(chunk_size=self.config["chunk_size"])
        form_headers = to_headers(headers).copy()
        form_headers.update(stream.headers)
        with stream.reader:
            return self.request_reader(method, url, stream.reader, form_headers)

    @abc.abstractmethod
    def request_reader(
        self,
        method: str,
        url: URLTypes,
        reader: Reader,
        headers: HeaderTypes = None,
    ) -> Response:
        raise NotImplementedError()

    def close(self) -> None:
        typing.cast(typing.Any, self.client).close()

    def __enter__(self):
        return self

    def __exit__(self, *args: typing.Any) -> None:
        self.close()
