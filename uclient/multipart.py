"""
Streaming `multipart/*` encoder.

A list of nodes is framed into in-memory segments (boundaries, headers, part
bodies) and file segments. Files are opened and measured when the stream is
built, but their bytes are only read while the stream is consumed, so the
exact body length is known up front and memory stays bounded no matter how
large the attached files are.
"""
from __future__ import annotations

import binascii
import logging
import os
import typing
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
import httpx
from python_multipart.multipart import parse_options_header

from .config import DEFAULT_CHUNK_SIZE
from .exceptions import InvalidFile, MalformedNestedBoundary, PayloadError, StreamConsumed

__all__ = [
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
]

logger = logging.getLogger(__name__)

CRLF = b"\r\n"

HeaderTypes = typing.Union[
    httpx.Headers,
    typing.Mapping[str, str],
    typing.Sequence[typing.Tuple[str, str]],
    None,
]


def to_headers(headers: HeaderTypes) -> httpx.Headers:
    if isinstance(headers, httpx.Headers):
        return headers
    return httpx.Headers(headers)


@dataclass
class Part:
    """
    A part whose body is held in memory
    """

    headers: httpx.Headers
    body: bytes = b""

    def __post_init__(self) -> None:
        self.headers = to_headers(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")


@dataclass
class FilePart:
    """
    A part whose body is the content of a file on disk.

    `size` is optional. It is filled when multiparts are parsed, but is not
    necessary when they are generated: the file is measured when the stream
    is built.
    """

    headers: httpx.Headers
    path: Path
    size: typing.Optional[int] = None

    def __post_init__(self) -> None:
        self.headers = to_headers(self.headers)
        self.path = Path(self.path)


@dataclass
class Multipart:
    """
    A nested `multipart/*` body. Its boundary is read from its own
    `Content-Type` header.
    """

    headers: httpx.Headers
    nodes: typing.List[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.headers = to_headers(self.headers)


Node = typing.Union[Part, FilePart, Multipart]


def generate_boundary() -> bytes:
    return binascii.hexlify(os.urandom(16))


def get_multipart_boundary(headers: HeaderTypes) -> bytes:
    """
    Get the boundary parameter of a `multipart/*` Content-Type header
    """
    content_type = to_headers(headers).get("content-type")
    if content_type is None:
        raise MalformedNestedBoundary("missing Content-Type header")

    ctype, options = parse_options_header(content_type)
    if not ctype.lower().startswith(b"multipart/"):
        raise MalformedNestedBoundary(f"{content_type!r} is not a multipart type")

    params = {key.lower(): value for key, value in options.items()}
    boundary = params.get(b"boundary")
    if not boundary:
        raise MalformedNestedBoundary(f"no boundary parameter in {content_type!r}")
    return boundary


def _to_boundary(boundary: typing.Union[str, bytes]) -> bytes:
    if isinstance(boundary, str):
        boundary = boundary.encode("ascii")
    if not boundary:
        raise ValueError("boundary must not be empty")
    return boundary


def _header_block(headers: httpx.Headers) -> bytes:
    return b"".join(name + b": " + value + CRLF for name, value in headers.raw) + CRLF


def _iter_frames(
    boundary: bytes, nodes: typing.Iterable[Node]
) -> typing.Iterator[typing.Union[bytes, FilePart]]:
    for node in nodes:
        yield b"--" + boundary + CRLF
        if isinstance(node, Part):
            yield _header_block(node.headers)
            yield node.body
        elif isinstance(node, FilePart):
            yield _header_block(node.headers)
            yield node
        elif isinstance(node, Multipart):
            sub_boundary = get_multipart_boundary(node.headers)
            yield _header_block(node.headers)
            yield from _iter_frames(sub_boundary, node.nodes)
        else:
            raise TypeError(f"Unsupported multipart node: {node!r}")
        yield CRLF
    yield b"--" + boundary + b"--"


def _layout(
    boundary: bytes, nodes: typing.Iterable[Node]
) -> typing.List[typing.Union[bytes, FilePart]]:
    """
    Frame the nodes, joining adjacent in-memory frames into one buffer
    """
    layout: typing.List[typing.Union[bytes, FilePart]] = []
    buffer = bytearray()
    for frame in _iter_frames(boundary, nodes):
        if isinstance(frame, FilePart):
            if buffer:
                layout.append(bytes(buffer))
                buffer.clear()
            layout.append(frame)
        else:
            buffer += frame
    if buffer:
        layout.append(bytes(buffer))
    return layout


def _check_size(part: FilePart, size: int) -> None:
    if part.size is not None and part.size != size:
        raise InvalidFile(
            part.path, f"declared size is {part.size} bytes but found {size} bytes"
        )


class BytesSegment:
    def __init__(self, content: bytes) -> None:
        self.content = content
        self.size = len(content)
        self.offset = 0

    def read(self, size: int) -> bytes:
        chunk = self.content[self.offset : self.offset + size]
        self.offset += len(chunk)
        return chunk

    def close(self) -> None:
        self.offset = self.size


class _FileSegmentBase:
    def __init__(self, path: Path, size: int) -> None:
        self.path = path
        self.size = size
        self.remaining = size

    def _consume(self, chunk: bytes) -> bytes:
        if not chunk:
            raise PayloadError(
                f"{self.path} ended {self.remaining} bytes early, "
                f"it was {self.size} bytes when the stream was built"
            )
        self.remaining -= len(chunk)
        return chunk


class FileSegment(_FileSegmentBase):
    def __init__(self, path: Path, file: typing.BinaryIO, size: int) -> None:
        super().__init__(path, size)
        self.file = file

    @classmethod
    def open(cls, part: FilePart) -> FileSegment:
        try:
            file = open(part.path, "rb")
        except OSError as exc:
            raise InvalidFile(part.path, exc.strerror or "") from exc
        try:
            size = os.fstat(file.fileno()).st_size
            _check_size(part, size)
        except OSError as exc:
            file.close()
            raise InvalidFile(part.path, exc.strerror or "") from exc
        except InvalidFile:
            file.close()
            raise
        logger.debug("Opened %s (%d bytes) for multipart stream", part.path, size)
        return cls(part.path, file, size)

    def read(self, size: int) -> bytes:
        if self.remaining == 0:
            self.close()
            return b""
        try:
            chunk = self._consume(self.file.read(min(size, self.remaining)))
        except OSError as exc:
            raise PayloadError(f"failed to read {self.path}") from exc
        if self.remaining == 0:
            self.close()
        return chunk

    def close(self) -> None:
        if not self.file.closed:
            self.file.close()
            logger.debug("Closed %s", self.path)


class AsyncFileSegment(_FileSegmentBase):
    def __init__(self, path: Path, file: typing.Any, size: int) -> None:
        super().__init__(path, size)
        self.file = file
        self.closed = False

    @classmethod
    async def open(cls, part: FilePart) -> AsyncFileSegment:
        try:
            file = await aiofiles.open(part.path, "rb")
        except OSError as exc:
            raise InvalidFile(part.path, exc.strerror or "") from exc
        try:
            size = os.fstat(file.fileno()).st_size
            _check_size(part, size)
        except OSError as exc:
            await file.close()
            raise InvalidFile(part.path, exc.strerror or "") from exc
        except InvalidFile:
            await file.close()
            raise
        logger.debug("Opened %s (%d bytes) for multipart stream", part.path, size)
        return cls(part.path, file, size)

    async def read(self, size: int) -> bytes:
        if self.remaining == 0:
            await self.close()
            return b""
        try:
            chunk = self._consume(await self.file.read(min(size, self.remaining)))
        except OSError as exc:
            raise PayloadError(f"failed to read {self.path}") from exc
        if self.remaining == 0:
            await self.close()
        return chunk

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self.file.close()
            logger.debug("Closed %s", self.path)


SegmentType = typing.TypeVar("SegmentType")


class _StreamBase(typing.Generic[SegmentType]):
    def __init__(
        self,
        segments: typing.Iterable[SegmentType],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        self._segments: typing.Deque[SegmentType] = deque(segments)
        self._length = sum(segment.size for segment in self._segments)  # type: ignore
        self.chunk_size = chunk_size
        self._consumed = False
        self._closed = False

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} length={self._length}>"

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_readable(self) -> bool:
        """
        Return False when the stream has reached its end
        """
        if self._consumed:
            return False
        if self._closed:
            raise ValueError("I/O operation on closed multipart stream")
        return True

    def _check_iterable(self) -> None:
        if self._consumed:
            raise StreamConsumed()
        if self._closed:
            raise ValueError("I/O operation on closed multipart stream")


class MultipartStream(_StreamBase[typing.Union[BytesSegment, FileSegment]]):
    """
    Single-pass, file-like view over the encoded multipart body.
    """

    def _read_some(self, size: int) -> bytes:
        if not self._check_readable():
            return b""
        try:
            while self._segments:
                chunk = self._segments[0].read(size)
                if chunk:
                    return chunk
                self._segments.popleft()
        except PayloadError:
            self.close()
            raise
        self._consumed = True
        self._closed = True
        return b""

    def read(self, size: typing.Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            return b"".join(iter(lambda: self._read_some(self.chunk_size), b""))

        chunks = []
        while size > 0:
            chunk = self._read_some(size)
            if not chunk:
                break
            chunks.append(chunk)
            size -= len(chunk)
        return b"".join(chunks)

    def __iter__(self) -> typing.Iterator[bytes]:
        self._check_iterable()
        return self._iter_chunks()

    def _iter_chunks(self) -> typing.Iterator[bytes]:
        try:
            while True:
                chunk = self._read_some(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        while self._segments:
            self._segments.popleft().close()
        self._closed = True

    def __enter__(self) -> MultipartStream:
        return self

    def __exit__(self, *args: typing.Any) -> None:
        self.close()


class AsyncMultipartStream(
    _StreamBase[typing.Union[BytesSegment, AsyncFileSegment]]
):
    """
    Async twin of `MultipartStream`, files are read through aiofiles.
    """

    async def _read_some(self, size: int) -> bytes:
        if not self._check_readable():
            return b""
        try:
            while self._segments:
                segment = self._segments[0]
                if isinstance(segment, BytesSegment):
                    chunk = segment.read(size)
                else:
                    chunk = await segment.read(size)
                if chunk:
                    return chunk
                self._segments.popleft()
        except PayloadError:
            await self.aclose()
            raise
        self._consumed = True
        self._closed = True
        return b""

    async def read(self, size: typing.Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            size = self._length

        chunks = []
        while size > 0:
            chunk = await self._read_some(min(size, self.chunk_size))
            if not chunk:
                break
            chunks.append(chunk)
            size -= len(chunk)
        return b"".join(chunks)

    def __aiter__(self) -> typing.AsyncIterator[bytes]:
        self._check_iterable()
        return self._iter_chunks()

    async def _iter_chunks(self) -> typing.AsyncIterator[bytes]:
        try:
            while True:
                chunk = await self._read_some(self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        while self._segments:
            segment = self._segments.popleft()
            if isinstance(segment, BytesSegment):
                segment.close()
            else:
                await segment.close()
        self._closed = True

    async def __aenter__(self) -> AsyncMultipartStream:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()


def multipart_to_stream(
    boundary: typing.Union[str, bytes],
    nodes: typing.Iterable[Node],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> typing.Tuple[int, MultipartStream]:
    """
    Convert multipart nodes to a readable stream and its exact byte count.

    Every file is opened and measured here; if one of them can't be, the
    files opened so far are closed and `InvalidFile` is raised.
    """
    layout = _layout(_to_boundary(boundary), nodes)

    segments: typing.List[typing.Union[BytesSegment, FileSegment]] = []
    try:
        for item in layout:
            if isinstance(item, FilePart):
                segments.append(FileSegment.open(item))
            else:
                segments.append(BytesSegment(item))
    except BaseException:
        for segment in segments:
            segment.close()
        raise

    stream = MultipartStream(segments, chunk_size)
    logger.debug(
        "Built multipart stream of %d bytes from %d segments", len(stream), len(segments)
    )
    return len(stream), stream


async def async_multipart_to_stream(
    boundary: typing.Union[str, bytes],
    nodes: typing.Iterable[Node],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> typing.Tuple[int, AsyncMultipartStream]:
    """
    Async twin of `multipart_to_stream`.
    """
    layout = _layout(_to_boundary(boundary), nodes)

    segments: typing.List[typing.Union[BytesSegment, AsyncFileSegment]] = []
    try:
        for item in layout:
            if isinstance(item, FilePart):
                segments.append(await AsyncFileSegment.open(item))
            else:
                segments.append(BytesSegment(item))
    except BaseException:
        for segment in segments:
            if isinstance(segment, AsyncFileSegment):
                await segment.close()
        raise

    stream = AsyncMultipartStream(segments, chunk_size)
    logger.debug(
        "Built multipart stream of %d bytes from %d segments", len(stream), len(segments)
    )
    return len(stream), stream
