"""
Aiohttp-based implementation of the Transport protocol.

[AiohttpTransport][obspec_stream.transports.AiohttpTransport] reaches objects
through plain HTTP(S) requests using path-style addressing
(`{endpoint}/{bucket}/{key}`). It does not sign requests, so it is meant for
public buckets, pre-authorised gateways, or endpoints that accept a static
`Authorization` header. For signed S3 access use
[ObstoreTransport][obspec_stream.transports.ObstoreTransport].

Example
-------

```python
from obspec_stream import S3
from obspec_stream.transports import AiohttpTransport

async with AiohttpTransport("http://localhost:9000") as transport:
    meta = await transport.head_object("my-bucket", "test.nc")

# Synchronous use creates a session per request
obj = S3(AiohttpTransport("http://localhost:9000")).bucket("my-bucket").object("test.nc")
header = obj.read(8)
```
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import TYPE_CHECKING
from urllib.parse import quote

from obspec import GetResultAsync

from obspec_stream.errors import (
    ConstructionFailureError,
    DispatchFailureError,
    InvalidObjectStateError,
    NotModifiedError,
    ObjectNotFoundError,
    ObjectOperationError,
    RequestTimeoutError,
    ResponseFailureError,
    UnhandledServiceError,
)

if TYPE_CHECKING:
    from obspec import Attributes, ObjectMeta

try:
    import aiohttp
except ImportError as e:
    raise ImportError(
        "aiohttp is required for AiohttpTransport. Install it with: pip install aiohttp"
    ) from e

logger = logging.getLogger(__name__)

_ERROR_CODE_RE = re.compile(r"<Code>([^<]+)</Code>")
_CONTENT_RANGE_RE = re.compile(r"bytes\s+(\d+)-(\d+)/(\d+|\*)")

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound"}


@dataclass
class AiohttpGetResultAsync(GetResultAsync):
    """
    Result from a get request using aiohttp.

    Implements the obspec GetResultAsync protocol for asynchronous iteration.
    """

    _data: bytes
    _meta: ObjectMeta
    _attributes: Attributes = field(default_factory=dict)
    _range: tuple[int, int] = (0, 0)

    def __post_init__(self):
        if self._range == (0, 0):
            self._range = (0, len(self._data))

    @property
    def attributes(self) -> Attributes:
        """Additional object attributes."""
        return self._attributes

    async def buffer_async(self) -> bytes:
        """Return the data as a buffer."""
        return self._data

    @property
    def meta(self) -> ObjectMeta:
        """The ObjectMeta for this object."""
        return self._meta

    @property
    def range(self) -> tuple[int, int]:
        """The range of bytes returned by this request (end exclusive)."""
        return self._range

    async def __aiter__(self) -> AsyncIterator[bytes]:
        """Async iterate over chunks of the data."""
        yield self._data


def _get_header_case_insensitive(
    headers: dict, name: str, default: str | None = None
) -> str | None:
    """Get a header value with case-insensitive name lookup."""
    if name in headers:
        return headers[name]
    name_lower = name.lower()
    for key, value in headers.items():
        if key.lower() == name_lower:
            return value
    return default


def _parse_content_range(headers: dict) -> tuple[int, int] | None:
    """Return the inclusive `(start, end)` of a `Content-Range` header, if any."""
    content_range = _get_header_case_insensitive(headers, "Content-Range")
    if not content_range:
        return None
    match = _CONTENT_RANGE_RE.match(content_range.strip())
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def _parse_meta_from_headers(
    key: str, headers: dict, content_length: int | None = None
) -> ObjectMeta:
    """
    Extract ObjectMeta from HTTP response headers.

    `last_modified` is `None` when the header is missing or malformed, and
    `size` is `None` when neither `Content-Range`, `Content-Length` nor
    `content_length` gives it.
    """
    last_modified_str = _get_header_case_insensitive(headers, "Last-Modified")
    last_modified = None
    if last_modified_str:
        try:
            last_modified = parsedate_to_datetime(last_modified_str)
        except (ValueError, TypeError):
            last_modified = None

    # Size from Content-Range (ranged GET) or Content-Length (HEAD, full GET)
    size = content_length
    content_range = _get_header_case_insensitive(headers, "Content-Range")
    if content_range and "/" in content_range:
        # Format: bytes 0-999/1234
        total_str = content_range.split("/")[-1]
        if total_str != "*":
            size = int(total_str)
    else:
        content_length_str = _get_header_case_insensitive(headers, "Content-Length")
        if content_length_str:
            size = int(content_length_str)

    return {
        "path": key,
        "last_modified": last_modified,
        "size": size,
        "e_tag": _get_header_case_insensitive(headers, "ETag"),
        "version": None,
    }


def _parse_attributes_from_headers(headers: dict) -> Attributes:
    """Extract Attributes from HTTP response headers."""
    attrs: Attributes = {}
    header_names = [
        "Content-Disposition",
        "Content-Encoding",
        "Content-Language",
        "Content-Type",
        "Cache-Control",
    ]
    for header_name in header_names:
        value = _get_header_case_insensitive(headers, header_name)
        if value is not None:
            attrs[header_name] = value
    return attrs


def error_from_status(
    status: int, body: str, bucket: str, key: str
) -> ObjectOperationError:
    """
    Build the operation error for a non-success HTTP response.

    S3-compatible services put an error code in the XML body
    (`<Code>NoSuchKey</Code>`); HEAD responses have no body, so the status
    alone decides there.
    """
    context = {"bucket_name": bucket, "key": key}
    match = _ERROR_CODE_RE.search(body)
    code = match.group(1) if match else None
    if status == 304:
        return NotModifiedError("object not modified", **context)
    if status == 404 or code in _NOT_FOUND_CODES:
        return ObjectNotFoundError("object not found", **context)
    if code == "InvalidObjectState":
        return InvalidObjectStateError(
            "object is not in a readable state", **context
        )
    return UnhandledServiceError(
        f"service returned HTTP {status}" + (f" ({code})" if code else ""),
        code=code or str(status),
        data={"status": status},
        **context,
    )


def translate_aiohttp_error(
    exc: BaseException, bucket: str, key: str
) -> ObjectOperationError:
    """Convert an aiohttp client exception into the operation error taxonomy."""
    context = {"bucket_name": bucket, "key": key}
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return RequestTimeoutError(f"request timed out: {exc}", **context)
    if isinstance(exc, aiohttp.InvalidURL):
        return ConstructionFailureError(f"invalid request URL: {exc}", **context)
    if isinstance(exc, aiohttp.ClientConnectionError):
        return DispatchFailureError(f"could not send request: {exc}", **context)
    if isinstance(exc, (aiohttp.ClientPayloadError, aiohttp.ClientResponseError)):
        return ResponseFailureError(f"malformed response: {exc}", **context)
    return DispatchFailureError(str(exc), **context)


class AiohttpTransport:
    """
    An [aiohttp](https://docs.aiohttp.org/en/stable/)-based
    [Transport][obspec_stream.protocols.Transport].

    The transport should be used as an async context manager to reuse a single
    HTTP session across requests. The session belongs to the event loop that
    entered the context manager; requests driven from any other loop (such as
    the background loop behind the blocking file-like methods) open and close
    a session of their own, as they do when no context manager is used.

    Parameters
    ----------
    endpoint
        Base URL of the service, e.g. `https://s3.us-west-2.amazonaws.com`.
    headers
        Optional HTTP headers to include in all requests (e.g., authentication).
    timeout
        Request timeout in seconds. Default is 30.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.headers = headers or {}
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._session_loop: asyncio.AbstractEventLoop | None = None

    async def __aenter__(self) -> "AiohttpTransport":
        """Enter the async context manager, creating a reusable session."""
        self._session = aiohttp.ClientSession(
            timeout=self.timeout,
            headers=self.headers,
        )
        self._session_loop = asyncio.get_running_loop()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager, closing the session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            self._session_loop = None

    def build_url(self, bucket: str, key: str) -> str:
        """Build the path-style URL of an object."""
        return f"{self.endpoint}/{quote(bucket, safe='')}/{quote(key.lstrip('/'))}"

    def _shared_session(self) -> aiohttp.ClientSession | None:
        """The context-managed session, if it belongs to the running loop."""
        if self._session is None or self._session.closed:
            return None
        if asyncio.get_running_loop() is not self._session_loop:
            return None
        return self._session

    async def _request(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        bucket: str,
        key: str,
        request_headers: dict[str, str],
    ) -> tuple[bytes, int, dict]:
        async with session.request(method, url, headers=request_headers) as response:
            if response.status >= 300:
                body = await response.text(errors="replace") if method == "GET" else ""
                raise error_from_status(response.status, body, bucket, key)
            data = await response.read() if method == "GET" else b""
            return data, response.status, dict(response.headers)

    async def _send(
        self,
        method: str,
        bucket: str,
        key: str,
        request_headers: dict[str, str],
    ) -> tuple[bytes, int, dict]:
        url = self.build_url(bucket, key)
        try:
            session = self._shared_session()
            if session is not None:
                return await self._request(
                    session, method, url, bucket, key, request_headers
                )

            # Fallback: create a temporary session for this request
            async with aiohttp.ClientSession(
                timeout=self.timeout, headers=self.headers
            ) as session:
                return await self._request(
                    session, method, url, bucket, key, request_headers
                )
        except ObjectOperationError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, TimeoutError) as exc:
            raise translate_aiohttp_error(exc, bucket, key) from exc

    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        byte_range: tuple[int, int] | None = None,
    ) -> AiohttpGetResultAsync:
        """
        Fetch an object, or the inclusive byte range `byte_range` of it.

        Servers that ignore `Range` and answer `200` with the whole object are
        handled by slicing the requested range out of the body.

        Returns
        -------
        AiohttpGetResultAsync
            Result object with buffer_async() method and metadata.

        Raises
        ------
        ResponseFailureError
            If a `206` response covers a range starting elsewhere than requested.
        """
        request_headers: dict[str, str] = {}
        if byte_range is not None:
            start, end = byte_range
            request_headers["Range"] = f"bytes={start}-{end}"
        logger.debug(
            "GET %s range=%s", self.build_url(bucket, key), request_headers.get("Range")
        )
        data, status, headers = await self._send("GET", bucket, key, request_headers)
        meta = _parse_meta_from_headers(key, headers, len(data))
        result_range = (0, len(data))
        if byte_range is not None:
            start, end = byte_range
            if status == 206:
                served = _parse_content_range(headers)
                if served is not None and served[0] != start:
                    raise ResponseFailureError(
                        f"requested bytes {start}-{end} but the response covers "
                        f"bytes {served[0]}-{served[1]}",
                        bucket_name=bucket,
                        key=key,
                    )
                data = data[: end - start + 1]
            else:
                logger.debug("range ignored by server, slicing bytes %d-%d", start, end)
                data = data[start : end + 1]
            result_range = (start, start + len(data))
        return AiohttpGetResultAsync(
            _data=data,
            _meta=meta,
            _attributes=_parse_attributes_from_headers(headers),
            _range=result_range,
        )

    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        if_modified_since: datetime | None = None,
    ) -> ObjectMeta:
        """Fetch the object's metadata, optionally conditional on `if_modified_since`."""
        request_headers: dict[str, str] = {}
        if if_modified_since is not None:
            if if_modified_since.tzinfo is None:
                if_modified_since = if_modified_since.replace(tzinfo=timezone.utc)
            request_headers["If-Modified-Since"] = format_datetime(
                if_modified_since.astimezone(timezone.utc), usegmt=True
            )
        logger.debug(
            "HEAD %s if_modified_since=%s",
            self.build_url(bucket, key),
            request_headers.get("If-Modified-Since"),
        )
        _, _, headers = await self._send("HEAD", bucket, key, request_headers)
        meta = _parse_meta_from_headers(key, headers)
        if meta["size"] is None:
            raise ResponseFailureError(
                "HEAD response has no Content-Length", bucket_name=bucket, key=key
            )
        return meta

    def __repr__(self) -> str:
        return f"AiohttpTransport({self.endpoint!r})"


__all__ = [
    "AiohttpTransport",
    "AiohttpGetResultAsync",
    "error_from_status",
    "translate_aiohttp_error",
]
