"""
httpx HTTP client
"""
from __future__ import annotations

import httpx

from ..client import Reader, URLTypes, body_length, iter_reader
from ..config import ClientConfig
from ..exceptions import HttpClientError
from ..multipart import HeaderTypes
from ..responses import Response
from .client import ClientExt


class HttpxClient(ClientExt[httpx.Client]):
    def create_client(self, config: ClientConfig) -> httpx.Client:
        return httpx.Client(
            timeout=config["timeout"],
            follow_redirects=config["follow_redirects"],
            verify=config["verify"],
        )

    def request_reader(
        self,
        method: str,
        url: URLTypes,
        reader: Reader,
        headers: HeaderTypes = None,
    ) -> Response:
        length = body_length(reader)
        request_headers = self.prepare_headers(headers, length)
        content = (
            None if length == 0 else iter_reader(reader, self.config["chunk_size"])
        )

        self.log_request(method, url, length)
        try:
            resp = self.client.request(
                method,
                url,
                content=content,
                headers=request_headers,
                follow_redirects=self.config["follow_redirects"],
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise HttpClientError(repr(exc)) from exc
        self.log_response(method, url, resp.status_code)

        return Response(
            status_code=resp.status_code,
            headers=resp.headers,
            text=resp.text,
            http_version=resp.http_version,
        )
