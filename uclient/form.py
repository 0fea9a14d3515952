from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
import typing
from dataclasses import dataclass, field
from pathlib import Path

import httpx
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from .config import DEFAULT_CHUNK_SIZE
from .exceptions import InvalidFile, MultipartError
from .multipart import (
    AsyncMultipartStream,
    FilePart,
    HeaderTypes,
    MultipartStream,
    Node,
    Part,
    async_multipart_to_stream,
    generate_boundary,
    multipart_to_stream,
)

__all__ = ["FormData", "FormStream", "parse_form"]

logger = logging.getLogger(__name__)

_ESCAPES = {'"': "%22", "\r": "%0D", "\n": "%0A"}


def _quote(value: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in value)


def _disposition(name: str, filename: typing.Optional[str] = None) -> bytes:
    value = f'form-data; name="{_quote(name)}"'
    if filename is not None:
        value += f'; filename="{_quote(filename)}"'
    return value.encode("utf-8")


StreamType = typing.TypeVar("StreamType", MultipartStream, AsyncMultipartStream)


@dataclass
class FormStream(typing.Generic[StreamType]):
    """
    Form stream with boundary, bytes count and a readable stream
    """

    boundary: bytes
    reader: StreamType
    count: int

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary.decode('ascii')}"

    @property
    def headers(self) -> typing.Dict[str, str]:
        return {"Content-Type": self.content_type, "Content-Length": str(self.count)}


@dataclass
class FormData:
    """
    The text fields and files of a `multipart/form-data` body.

    `fields` are parts with no filename in their Content-Disposition,
    `files` are parts with one.
    """

    fields: typing.List[typing.Tuple[str, str]] = field(default_factory=list)
    files: typing.List[typing.Tuple[str, FilePart]] = field(default_factory=list)

    def add_field(self, name: str, value: str) -> None:
        self.fields.append((name, value))

    def add_file(
        self,
        name: str,
        path: typing.Union[str, os.PathLike],
        headers: HeaderTypes = None,
        size: typing.Optional[int] = None,
    ) -> None:
        self.files.append((name, FilePart(headers, Path(path), size)))

    def to_multipart(self) -> typing.List[Node]:
        nodes: typing.List[Node] = []

        for name, value in self.fields:
            nodes.append(
                Part(
                    httpx.Headers([(b"Content-Disposition", _disposition(name))]),
                    value.encode("utf-8"),
                )
            )

        for name, filepart in self.files:
            filename = filepart.path.name
            if not filename:
                raise InvalidFile(filepart.path, "path has no file name")
            # Keep every header the caller set, except Content-Disposition
            headers = httpx.Headers(
                [(b"Content-Disposition", _disposition(name, filename))]
                + [
                    (key, value)
                    for key, value in filepart.headers.raw
                    if key.lower() != b"content-disposition"
                ]
            )
            if "content-type" not in headers:
                guess, _ = mimetypes.guess_type(filename)
                headers["Content-Type"] = guess or "application/octet-stream"
            nodes.append(FilePart(headers, filepart.path, filepart.size))

        return nodes

    def into_form_stream(
        self, *, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> FormStream[MultipartStream]:
        nodes = self.to_multipart()
        boundary = generate_boundary()
        count, reader = multipart_to_stream(boundary, nodes, chunk_size=chunk_size)
        return FormStream(boundary, reader, count)

    async def into_async_form_stream(
        self, *, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> FormStream[AsyncMultipartStream]:
        nodes = self.to_multipart()
        boundary = generate_boundary()
        count, reader = await async_multipart_to_stream(
            boundary, nodes, chunk_size=chunk_size
        )
        return FormStream(boundary, reader, count)


def _decode_param(value: bytes, name: str) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MultipartError(f"{name} parameter is not valid UTF-8") from exc


class _FormCollector:
    """
    python-multipart callbacks that collect parts into a `FormData`
    """

    def __init__(self, upload_dir: typing.Optional[str]) -> None:
        self.upload_dir = upload_dir
        self.form = FormData()
        self._created: typing.List[str] = []
        self._header_field = bytearray()
        self._header_value = bytearray()
        self.finished = False
        self._reset()

    def _reset(self) -> None:
        self._headers: typing.List[typing.Tuple[bytes, bytes]] = []
        self._name = ""
        self._charset = "utf-8"
        self._data = bytearray()
        self._file: typing.Optional[typing.BinaryIO] = None
        self._size = 0

    @property
    def callbacks(self) -> typing.Dict[str, typing.Callable]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._reset()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append((bytes(self._header_field), bytes(self._header_value)))
        self._header_field.clear()
        self._header_value.clear()

    def _raw_header(self, name: bytes) -> typing.Optional[bytes]:
        for key, value in self._headers:
            if key.lower() == name:
                return value
        return None

    def on_headers_finished(self) -> None:
        disposition = self._raw_header(b"content-disposition")
        if disposition is None:
            raise MultipartError("part has no Content-Disposition header")
        _, params = parse_options_header(disposition)
        options = {key.lower(): value for key, value in params.items()}
        if b"name" not in options:
            raise MultipartError("part has no name in its Content-Disposition")
        self._name = _decode_param(options[b"name"], "name")

        content_type = self._raw_header(b"content-type")
        if content_type is not None:
            _, ct_options = parse_options_header(content_type)
            self._charset = ct_options.get(b"charset", b"utf-8").decode("latin-1")

        if b"filename" in options:
            filename = _decode_param(options[b"filename"], "filename")
            suffix = os.path.splitext(filename)[1]
            self._file = tempfile.NamedTemporaryFile(
                "wb", suffix=suffix, dir=self.upload_dir, delete=False
            )
            self._created.append(self._file.name)
            logger.debug("Spooling upload %r to %s", self._name, self._file.name)

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._file is not None:
            self._file.write(data[start:end])
            self._size += end - start
        else:
            self._data += data[start:end]

    def on_part_end(self) -> None:
        if self._file is not None:
            self._file.close()
            self.form.files.append(
                (self._name, FilePart(self._headers, Path(self._file.name), self._size))
            )
        else:
            try:
                value = self._data.decode(self._charset)
            except (LookupError, UnicodeDecodeError) as exc:
                raise MultipartError(f"can't decode field {self._name!r}") from exc
            self.form.fields.append((self._name, value))

    def on_end(self) -> None:
        self.finished = True

    def discard(self) -> None:
        if self._file is not None and not self._file.closed:
            self._file.close()
        for filename in self._created:
            try:
                os.remove(filename)
            except FileNotFoundError:
                pass


def parse_form(
    content_type: str,
    chunks: typing.Union[bytes, typing.Iterable[bytes]],
    upload_dir: typing.Optional[str] = None,
) -> FormData:
    """
    Parse a `multipart/form-data` body into a `FormData`.

    Parts with a filename are written to temporary files in `upload_dir`
    (the system default when None) and returned as `FilePart` with their
    size filled. Removing those files is up to the caller.
    """
    ctype, options = parse_options_header(content_type)
    if ctype.lower() != b"multipart/form-data":
        raise MultipartError(f"{content_type!r} is not multipart/form-data")
    boundary = {key.lower(): value for key, value in options.items()}.get(b"boundary")
    if not boundary:
        raise MultipartError(f"no boundary parameter in {content_type!r}")

    if isinstance(chunks, (bytes, bytearray)):
        chunks = [bytes(chunks)]

    collector = _FormCollector(upload_dir)
    parser = MultipartParser(boundary, collector.callbacks)
    try:
        for chunk in chunks:
            parser.write(chunk)
        parser.finalize()
        if not collector.finished:
            raise MultipartError("multipart body ended before its closing boundary")
    except MultipartParseError as exc:
        collector.discard()
        raise MultipartError(str(exc)) from exc
    except BaseException:
        collector.discard()
        raise
    return collector.form
