"""Tests for ObstoreTransport, using obstore's in-memory store."""

from datetime import datetime, timezone

import pytest
from obstore.exceptions import (
    GenericError,
    InvalidPathError,
    NotFoundError,
    PermissionDeniedError,
)
from obstore.exceptions import NotModifiedError as ObstoreNotModifiedError
from obstore.store import MemoryStore

from obspec_stream import S3
from obspec_stream.errors import (
    ConstructionFailureError,
    DispatchFailureError,
    InvalidObjectStateError,
    NotModifiedError,
    ObjectNotFoundError,
    RequestTimeoutError,
    ResponseFailureError,
    StreamNotFoundError,
    UnhandledServiceError,
)
from obspec_stream.transports import ObstoreTransport
from obspec_stream.transports._obstore import translate_obstore_error


@pytest.fixture
def memstore():
    store = MemoryStore()
    store.put("digits.txt", b"0123456789")
    return store


@pytest.fixture
def memory_transport(memstore):
    return ObstoreTransport(store_factory=lambda bucket: memstore)


def test_store_is_created_once_per_bucket():
    created = []

    def factory(bucket):
        created.append(bucket)
        return MemoryStore()

    transport = ObstoreTransport(store_factory=factory)
    first = transport.store("a")
    assert transport.store("a") is first
    transport.store("b")
    assert created == ["a", "b"]


@pytest.mark.asyncio
async def test_get_object(memory_transport):
    result = await memory_transport.get_object("my-bucket", "digits.txt")
    assert bytes(await result.buffer_async()) == b"0123456789"


@pytest.mark.asyncio
@pytest.mark.parametrize("start,end", [(0, 0), (2, 5), (0, 9), (9, 9)])
async def test_get_object_inclusive_range(memory_transport, start, end):
    result = await memory_transport.get_object(
        "my-bucket", "digits.txt", byte_range=(start, end)
    )
    assert bytes(await result.buffer_async()) == b"0123456789"[start : end + 1]


@pytest.mark.asyncio
async def test_head_object(memory_transport):
    meta = await memory_transport.head_object("my-bucket", "digits.txt")
    assert meta["size"] == 10
    assert meta["last_modified"] is not None


@pytest.mark.asyncio
async def test_head_object_not_modified(memory_transport):
    with pytest.raises(NotModifiedError):
        await memory_transport.head_object(
            "my-bucket",
            "digits.txt",
            if_modified_since=datetime(2100, 1, 1, tzinfo=timezone.utc),
        )


@pytest.mark.asyncio
async def test_head_object_modified_since_old_date(memory_transport):
    meta = await memory_transport.head_object(
        "my-bucket",
        "digits.txt",
        if_modified_since=datetime(2000, 1, 1, tzinfo=timezone.utc),
    )
    assert meta["size"] == 10


@pytest.mark.asyncio
async def test_missing_object(memory_transport):
    with pytest.raises(ObjectNotFoundError) as excinfo:
        await memory_transport.get_object("my-bucket", "missing.txt")
    assert excinfo.value.bucket_name == "my-bucket"
    assert excinfo.value.key == "missing.txt"
    assert isinstance(excinfo.value.__cause__, (NotFoundError, FileNotFoundError))


def test_blocking_reads_through_memory_store(memory_transport, runner):
    obj = S3(memory_transport, runner=runner).bucket("my-bucket").object("digits.txt")
    assert obj.seek(5) == 5
    assert obj.read(3) == b"567"
    assert obj.seek(-2, 2) == 8
    assert obj.read(5) == b"89"
    assert obj.read(5) == b""


def test_blocking_read_missing_object(memory_transport, runner):
    obj = S3(memory_transport, runner=runner).bucket("my-bucket").object("nope")
    with pytest.raises(StreamNotFoundError):
        obj.read(1)


@pytest.mark.parametrize(
    "exc,expected",
    [
        (ObstoreNotModifiedError("not modified"), NotModifiedError),
        (NotFoundError("missing"), ObjectNotFoundError),
        (InvalidPathError("bad path"), ConstructionFailureError),
        (TimeoutError("deadline"), RequestTimeoutError),
        (GenericError("operation timed out"), RequestTimeoutError),
        (GenericError("error sending request for url"), DispatchFailureError),
        (GenericError("error decoding response body"), ResponseFailureError),
        (GenericError("InvalidObjectState: object is archived"), InvalidObjectStateError),
        (PermissionDeniedError("denied"), UnhandledServiceError),
    ],
)
def test_translate_obstore_error(exc, expected):
    error = translate_obstore_error(exc, "my-bucket", "digits.txt")
    assert type(error) is expected
    assert error.data["bucket_name"] == "my-bucket"
    assert error.data["key"] == "digits.txt"


def test_unhandled_error_records_exception_type():
    error = translate_obstore_error(PermissionDeniedError("denied"), "b", "k")
    assert error.code == "PermissionDeniedError"


@pytest.mark.network
def test_public_bucket():
    """Read a few bytes from a public bucket on AWS."""
    s3 = S3.from_config({"region": "us-west-2", "skip_signature": True})
    obj = s3.bucket("sentinel-cogs").object(
        "sentinel-s2-l2a-cogs/12/S/UF/2022/6/S2A_12SUF_20220601_0_L2A/TCI.tif"
    )
    assert obj.read(4) in (b"II*\x00", b"MM\x00*")
    assert obj.length > 4
