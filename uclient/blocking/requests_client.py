"""
requests HTTP client
"""
from __future__ import annotations

import typing

import httpx
import requests
from requests.structures import CaseInsensitiveDict

from ..client import HTTP_VERSIONS, Reader, URLTypes, body_length, iter_reader
from ..config import ClientConfig
from ..exceptions import HttpClientError
from ..multipart import HeaderTypes
from ..responses import Response
from .client import ClientExt


def _to_requests_headers(headers: httpx.Headers) -> CaseInsensitiveDict:
    result: CaseInsensitiveDict = CaseInsensitiveDict()
    for raw_key, raw_value in headers.raw:
        key, value = raw_key.decode("latin-1"), raw_value.decode("latin-1")
        result[key] = f"{result[key]}, {value}" if key in result else value
    return result


class RequestsClient(ClientExt[requests.Session]):
    def create_client(self, config: ClientConfig) -> requests.Session:
        session = requests.Session()
        session.verify = config["verify"]
        return session

    def request_reader(
        self,
        method: str,
        url: URLTypes,
        reader: Reader,
        headers: HeaderTypes = None,
    ) -> Response:
        length = body_length(reader)
        request_headers = self.prepare_headers(headers, length)

        data: typing.Any
        if length == 0:
            data = None
        elif length is None:
            # requests sends a generator with chunked transfer encoding
            data = iter_reader(reader, self.config["chunk_size"])
        else:
            data = reader

        self.log_request(method, url, length)
        try:
            resp = self.client.request(
                method,
                str(url),
                data=data,
                headers=_to_requests_headers(request_headers),
                allow_redirects=self.config["follow_redirects"],
                timeout=self.config["timeout"],
            )
        except requests.RequestException as exc:
            raise HttpClientError(repr(exc)) from exc
        self.log_response(method, url, resp.status_code)

        version = getattr(resp.raw, "version", 11)
        return Response(
            status_code=resp.status_code,
            headers=httpx.Headers(list(resp.headers.items())),
            text=resp.text,
            http_version=HTTP_VERSIONS.get(version, "HTTP/1.1"),
        )
