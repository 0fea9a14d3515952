from __future__ import annotations

import builtins
import os

import pytest

from uclient import multipart
from uclient.exceptions import (
    InvalidFile,
    MalformedNestedBoundary,
    PayloadError,
    StreamConsumed,
)
from uclient.multipart import (
    FilePart,
    Multipart,
    Part,
    generate_boundary,
    get_multipart_boundary,
    multipart_to_stream,
)


def write_file(tmp_path, name, content):
    path = tmp_path / name
    path.write_bytes(content)
    return path


@pytest.fixture
def opened_files(monkeypatch):
    files = []

    def recording_open(*args, **kwargs):
        file = builtins.open(*args, **kwargs)
        files.append(file)
        return file

    monkeypatch.setattr(multipart, "open", recording_open, raising=False)
    return files


def test_single_part():
    nodes = [Part({"Content-Disposition": 'form-data; name="title"'}, b"hello")]
    count, stream = multipart_to_stream("XYZ", nodes)
    body = b"".join(stream)

    assert body == (
        b"--XYZ\r\n"
        b'Content-Disposition: form-data; name="title"\r\n'
        b"\r\n"
        b"hello\r\n"
        b"--XYZ--"
    )
    assert count == len(body) == len(stream)


def test_no_nodes():
    count, stream = multipart_to_stream(b"XYZ", [])
    assert stream.read() == b"--XYZ--"
    assert count == 7


def test_empty_boundary():
    with pytest.raises(ValueError):
        multipart_to_stream(b"", [])


def test_header_order_is_kept():
    nodes = [Part([("X-B", "1"), ("X-A", "2"), ("X-B", "3")], "héllo")]
    _, stream = multipart_to_stream("b", nodes)

    assert stream.read() == (
        b"--b\r\nX-B: 1\r\nX-A: 2\r\nX-B: 3\r\n\r\n" + "héllo".encode("utf-8") + b"\r\n--b--"
    )


def test_file_part(tmp_path):
    content = os.urandom(1000)
    path = write_file(tmp_path, "avatar.png", content)
    nodes = [FilePart({"Content-Type": "image/png"}, path)]
    count, stream = multipart_to_stream("B", nodes)
    body = stream.read()

    assert body == (
        b"--B\r\nContent-Type: image/png\r\n\r\n" + content + b"\r\n--B--"
    )
    assert count == len(body)


@pytest.mark.parametrize(
    "sizes",
    [
        [],
        [0],
        [1],
        [70000],
        [0, 5, 4096 * 16, 4096 * 16 + 1],
    ],
)
def test_length_accuracy(tmp_path, sizes):
    nodes = [Part({"Content-Disposition": 'form-data; name="a"'}, b"value")]
    for index, size in enumerate(sizes):
        path = write_file(tmp_path, f"file-{index}", os.urandom(size))
        nodes.append(FilePart({"Content-Disposition": "form-data"}, path))
        nodes.append(Part({}, b"x" * index))

    count, stream = multipart_to_stream(generate_boundary(), nodes)
    assert len(b"".join(stream)) == count


def test_order_is_kept(tmp_path):
    path = write_file(tmp_path, "b.txt", b"<file b>")
    nodes = [
        Part({"Content-Disposition": 'form-data; name="a"'}, b"<part a>"),
        FilePart({"Content-Disposition": 'form-data; name="b"'}, path),
        Part({"Content-Disposition": 'form-data; name="c"'}, b"<part c>"),
    ]
    _, stream = multipart_to_stream("sep", nodes)
    body = stream.read()

    positions = [body.index(marker) for marker in (b"<part a>", b"<file b>", b"<part c>")]
    assert positions == sorted(positions)
    assert body.count(b"--sep\r\n") == 3
    assert body.endswith(b"<part c>\r\n--sep--")


def test_missing_file(tmp_path, opened_files):
    good = write_file(tmp_path, "good.txt", b"good")
    nodes = [
        FilePart({}, good),
        FilePart({}, tmp_path / "missing.txt"),
    ]
    with pytest.raises(InvalidFile) as exc_info:
        multipart_to_stream("B", nodes)

    assert exc_info.value.path == tmp_path / "missing.txt"
    assert len(opened_files) == 1
    assert all(file.closed for file in opened_files)


def test_directory_is_invalid(tmp_path):
    with pytest.raises(InvalidFile):
        multipart_to_stream("B", [FilePart({}, tmp_path)])


def test_declared_size(tmp_path, opened_files):
    path = write_file(tmp_path, "a.bin", b"12345")

    count, stream = multipart_to_stream("B", [FilePart({}, path, size=5)])
    assert len(stream.read()) == count

    with pytest.raises(InvalidFile):
        multipart_to_stream("B", [FilePart({}, path, size=4)])
    assert all(file.closed for file in opened_files)


def test_nested_multipart(tmp_path):
    path = write_file(tmp_path, "two.txt", b"two")
    nodes = [
        Part({"Content-Disposition": 'form-data; name="field"'}, b"value"),
        Multipart(
            {
                "Content-Disposition": 'form-data; name="files"',
                "Content-Type": "multipart/mixed; boundary=inner",
            },
            [
                Part({"Content-Type": "text/plain"}, b"one"),
                FilePart({}, path),
            ],
        ),
    ]
    count, stream = multipart_to_stream("outer", nodes)
    body = stream.read()

    assert body == (
        b"--outer\r\n"
        b'Content-Disposition: form-data; name="field"\r\n'
        b"\r\n"
        b"value\r\n"
        b"--outer\r\n"
        b'Content-Disposition: form-data; name="files"\r\n'
        b"Content-Type: multipart/mixed; boundary=inner\r\n"
        b"\r\n"
        b"--inner\r\n"
        b"Content-Type: text/plain\r\n"
        b"\r\n"
        b"one\r\n"
        b"--inner\r\n"
        b"\r\n"
        b"two\r\n"
        b"--inner--\r\n"
        b"--outer--"
    )
    assert count == len(body)


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Content-Type": "multipart/mixed"},
        {"Content-Type": "multipart/mixed; boundary="},
        {"Content-Type": "text/plain; boundary=abc"},
    ],
)
def test_malformed_nested_boundary(tmp_path, opened_files, headers):
    path = write_file(tmp_path, "a.txt", b"a")
    nodes = [FilePart({}, path), Multipart(headers, [Part({}, b"nested")])]

    with pytest.raises(MalformedNestedBoundary):
        multipart_to_stream("B", nodes)
    assert opened_files == []


@pytest.mark.parametrize(
    "content_type, boundary",
    [
        ("multipart/mixed; boundary=abc", b"abc"),
        ('multipart/alternative; boundary="a b:c"', b"a b:c"),
        ("Multipart/Mixed; charset=utf-8; Boundary=xyz", b"xyz"),
    ],
)
def test_get_multipart_boundary(content_type, boundary):
    assert get_multipart_boundary({"content-type": content_type}) == boundary


def test_generate_boundary():
    boundary = generate_boundary()
    assert len(boundary) == 32
    assert boundary != generate_boundary()
    int(boundary, 16)


def test_single_pass(tmp_path):
    path = write_file(tmp_path, "a.txt", b"content")
    count, stream = multipart_to_stream("B", [FilePart({}, path)])

    assert len(b"".join(stream)) == count
    assert stream.consumed
    assert stream.read() == b""
    with pytest.raises(StreamConsumed):
        iter(stream)


def test_read_size(tmp_path):
    path = write_file(tmp_path, "a.txt", b"0123456789")
    nodes = [Part({}, b"abc"), FilePart({}, path)]
    count, stream = multipart_to_stream("B", nodes)

    head = stream.read(9)
    assert head == b"--B\r\n\r\nab"
    middle = stream.read(10)
    assert len(middle) == 10
    assert head + middle + stream.read() == (
        b"--B\r\n\r\nabc\r\n--B\r\n\r\n0123456789\r\n--B--"
    )
    assert stream.read(1) == b""


def test_chunks_are_bounded(tmp_path):
    content = os.urandom(1024 * 1024)
    path = write_file(tmp_path, "big.bin", content)
    _, stream = multipart_to_stream("B", [FilePart({}, path)], chunk_size=4096)

    chunks = list(stream)
    assert max(len(chunk) for chunk in chunks) <= 4096
    assert content in b"".join(chunks)


def test_file_shrinks_after_build(tmp_path):
    path = write_file(tmp_path, "a.bin", b"x" * 100)
    _, stream = multipart_to_stream("B", [FilePart({}, path)])

    with open(path, "r+b") as file:
        file.truncate(40)

    with pytest.raises(PayloadError):
        stream.read()
    assert stream.closed


def test_file_grows_after_build(tmp_path):
    path = write_file(tmp_path, "a.bin", b"x" * 10)
    count, stream = multipart_to_stream("B", [FilePart({}, path)])

    with open(path, "ab") as file:
        file.write(b"y" * 10)

    body = stream.read()
    assert len(body) == count
    assert b"y" not in body


def test_abandoned_iteration_closes_files(tmp_path, opened_files):
    path = write_file(tmp_path, "a.bin", os.urandom(10000))
    _, stream = multipart_to_stream("B", [FilePart({}, path)], chunk_size=100)

    chunks = iter(stream)
    next(chunks)
    next(chunks)
    chunks.close()  # type: ignore

    assert stream.closed
    assert all(file.closed for file in opened_files)
    with pytest.raises(ValueError):
        stream.read()


def test_context_manager_closes_files(tmp_path, opened_files):
    path = write_file(tmp_path, "a.bin", b"abc")
    _, stream = multipart_to_stream("B", [FilePart({}, path)])

    with stream:
        stream.read(3)

    assert stream.closed
    assert len(opened_files) == 1
    assert opened_files[0].closed


def test_file_is_closed_once_read(tmp_path, opened_files):
    path = write_file(tmp_path, "a.bin", b"abc")
    _, stream = multipart_to_stream("B", [FilePart({}, path), Part({}, b"tail")])

    body = stream.read(len(b"--B\r\n\r\nabc"))
    assert body.endswith(b"abc")
    assert opened_files[0].closed
    assert not stream.closed
