from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from .responses import Response


class UClientError(Exception):
    """
    Base class of every error raised by uclient
    """


class HttpClientError(UClientError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"HTTP client error: {self.message}"


class HTTPStatusError(HttpClientError):
    def __init__(self, message: str, *, response: Response) -> None:
        super().__init__(message)
        self.response = response


class PayloadError(UClientError):
    """
    The request body could not be read while it was being sent
    """

    def __str__(self) -> str:
        detail = super().__str__()
        return f"Payload Error: {detail}" if detail else "Payload Error"


class MultipartError(UClientError):
    def __str__(self) -> str:
        return f"Multipart error: {super().__str__()}"


class InvalidFile(MultipartError):
    def __init__(self, path: typing.Any = None, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = "Invalid file. File not found or permission error"
        if path is not None:
            message += f": {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class MalformedNestedBoundary(MultipartError):
    pass


class StreamConsumed(MultipartError):
    def __init__(self) -> None:
        super().__init__(
            "The multipart stream has already been consumed, "
            "rebuild it from its nodes to send it again"
        )
