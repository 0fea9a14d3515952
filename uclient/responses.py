from __future__ import annotations

import json
import typing
from dataclasses import dataclass
from http import HTTPStatus

import httpx

from .exceptions import HTTPStatusError


@dataclass
class Response:
    """
    Backend independent HTTP response
    """

    status_code: int
    headers: httpx.Headers
    text: str = ""
    http_version: str = "HTTP/1.1"

    @property
    def reason_phrase(self) -> str:
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self, **kwargs: typing.Any) -> typing.Any:
        return json.loads(self.text, **kwargs)

    def raise_for_status(self) -> Response:
        if not self.ok:
            raise HTTPStatusError(
                f"{self.status_code} {self.reason_phrase}".rstrip(), response=self
            )
        return self

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}]>"
