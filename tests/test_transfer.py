import hashlib
import io

from swift_obst.transfer import (
    BufferThenSend,
    ReplayInPlace,
    encode_content,
    is_seekable,
    select_strategy,
)


class OneWayStream:
    """A readable source that cannot be rewound."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    def read(self, size=-1):
        return self._buffer.read(size)


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def test_strategy_follows_seek_capability():
    assert isinstance(select_strategy(io.BytesIO(b"x")), ReplayInPlace)
    assert isinstance(select_strategy(OneWayStream(b"x")), BufferThenSend)
    assert not is_seekable(OneWayStream(b"x"))


def test_seekable_source_is_rewound_and_reused():
    content = b"I implement Seek()"
    source = io.BytesIO(content)

    encoded = encode_content(source)

    assert encoded.body is source
    assert encoded.headers["ETag"] == md5(content)
    assert encoded.content_length == len(content)
    assert encoded.body.read() == content


def test_seekable_source_hashed_from_current_position():
    source = io.BytesIO(b"skip:keep")
    source.seek(5)

    encoded = encode_content(source)

    assert encoded.headers["ETag"] == md5(b"keep")
    assert encoded.content_length == 4
    assert encoded.body.read() == b"keep"


def test_non_seekable_source_is_buffered():
    content = b"I do not implement Seek()"

    encoded = encode_content(OneWayStream(content))

    assert is_seekable(encoded.body)
    assert encoded.body.read() == content
    assert encoded.headers["ETag"] == md5(content)
    assert encoded.headers["Content-Length"] == str(len(content))


def test_supplied_etag_is_trusted():
    encoded = encode_content(io.BytesIO(b"some example object"), etag="not-really-a-checksum")
    assert encoded.headers["ETag"] == "not-really-a-checksum"


def test_no_etag_omits_header():
    encoded = encode_content(io.BytesIO(b"some example object"), no_etag=True)
    assert "ETag" not in encoded.headers
    assert encoded.content_length == len(b"some example object")


def test_no_etag_with_non_seekable_source_leaves_length_unknown():
    source = OneWayStream(b"streamed")
    encoded = encode_content(source, no_etag=True)
    assert encoded.body is source
    assert encoded.content_length is None
    assert encoded.headers == {}


def test_empty_content():
    for source in (b"", io.BytesIO(), OneWayStream(b""), None):
        encoded = encode_content(source)
        assert encoded.headers["ETag"] == "d41d8cd98f00b204e9800998ecf8427e"
        assert encoded.content_length == 0
        assert encoded.body.read() == b""


def test_text_content_sent_as_utf8():
    encoded = encode_content("héllo")
    assert encoded.body.read() == "héllo".encode("utf-8")
    assert encoded.headers["ETag"] == md5("héllo".encode("utf-8"))
