"""
httpx async HTTP client
"""
from __future__ import annotations

import httpx

from ..client import Reader, URLTypes, aiter_reader, body_length
from ..config import ClientConfig
from ..exceptions import HttpClientError
from ..multipart import HeaderTypes
from ..responses import Response
from .client import AsyncClientExt


class AsyncHttpxClient(AsyncClientExt[httpx.AsyncClient]):
    def create_client(self, config: ClientConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=config["timeout"],
            follow_redirects=config["follow_redirects"],
            verify=config["verify"],
        )

    async def request_reader(
        self,
        method: str,
        url: URLTypes,
        reader: Reader,
        headers: HeaderTypes = None,
    ) -> Response:
        length = body_length(reader)
        request_headers = self.prepare_headers(headers, length)
        content = (
            None if length == 0 else aiter_reader(reader, self.config["chunk_size"])
        )

        self.log_request(method, url, length)
        try:
            resp = await self.client.request(
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
