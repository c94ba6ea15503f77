"""Shared mock classes for tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from obspec_stream.errors import NotModifiedError, ObjectNotFoundError


class MockGetResultAsync:
    """Mock async GetResult for testing."""

    def __init__(self, data, chunk_size=None, last_modified=None):
        self._data = data
        self._chunk_size = chunk_size or max(len(data), 1)
        self._last_modified = last_modified

    @property
    def attributes(self):
        return {}

    async def buffer_async(self):
        return self._data

    @property
    def meta(self):
        return {
            "path": "",
            "last_modified": self._last_modified,
            "size": len(self._data),
            "e_tag": None,
            "version": None,
        }

    @property
    def range(self):
        return (0, len(self._data))

    async def __aiter__(self):
        for i in range(0, len(self._data), self._chunk_size):
            yield self._data[i : i + self._chunk_size]


class MockTransport:
    """
    An in-memory transport implementing the Transport protocol.

    Records every call and lets tests inject failures.
    """

    def __init__(self, objects: dict[tuple[str, str], bytes] | None = None):
        self._objects: dict[tuple[str, str], bytes] = {}
        self._modified: dict[tuple[str, str], datetime] = {}
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.calls: list[tuple] = []
        self.get_error: Exception | None = None
        self.head_error: Exception | None = None
        self.size_override: int | None = None
        self.chunk_size: int | None = None
        for (bucket, key), data in (objects or {}).items():
            self.put(bucket, key, data)

    def put(self, bucket: str, key: str, data: bytes) -> None:
        self._clock += timedelta(seconds=1)
        self._objects[(bucket, key)] = data
        self._modified[(bucket, key)] = self._clock

    def _lookup(self, bucket, key):
        try:
            return self._objects[(bucket, key)]
        except KeyError:
            raise ObjectNotFoundError(
                "object not found", bucket_name=bucket, key=key
            ) from None

    async def get_object(self, bucket, key, *, byte_range=None):
        self.calls.append(("get", bucket, key, byte_range))
        if self.get_error is not None:
            raise self.get_error
        data = self._lookup(bucket, key)
        if byte_range is not None:
            start, end = byte_range
            data = data[start : end + 1]
        return MockGetResultAsync(
            data, self.chunk_size, self._modified[(bucket, key)]
        )

    async def head_object(self, bucket, key, *, if_modified_since=None):
        self.calls.append(("head", bucket, key, if_modified_since))
        if self.head_error is not None:
            raise self.head_error
        data = self._lookup(bucket, key)
        modified = self._modified[(bucket, key)]
        if if_modified_since is not None and modified <= if_modified_since:
            raise NotModifiedError("object not modified", bucket_name=bucket, key=key)
        return {
            "path": key,
            "last_modified": modified,
            "size": self.size_override if self.size_override is not None else len(data),
            "e_tag": None,
            "version": None,
        }

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)
