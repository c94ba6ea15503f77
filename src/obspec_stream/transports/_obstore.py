"""
obstore-based implementation of the Transport protocol.

[ObstoreTransport][obspec_stream.transports.ObstoreTransport] talks to S3 (or
any S3-compatible service) through obstore's [S3Store][obstore.store.S3Store].
obstore stores are bound to a single bucket, so the transport keeps one store
per bucket, created on first use and reused afterwards. Each store owns its
connection pool; every handle sharing the transport shares those pools.

Example
-------

```python
from obspec_stream.transports import ObstoreTransport

transport = ObstoreTransport(config={"region": "us-west-2", "skip_signature": True})
meta = await transport.head_object("sentinel-cogs", "sentinel-s2-l2a-cogs/tileinfo.json")
```
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

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
    from obspec import GetOptions, GetResultAsync, ObjectMeta
    from obstore.store import ClientConfig, ObjectStore, RetryConfig, S3Config

try:
    import obstore as obs
    from obstore.exceptions import (
        InvalidPathError,
        NotFoundError,
        NotSupportedError,
        UnknownConfigurationKeyError,
    )
    from obstore.exceptions import NotModifiedError as ObstoreNotModifiedError
    from obstore.store import S3Store
except ImportError as e:
    raise ImportError(
        "obstore is required for ObstoreTransport. Install it with: pip install obstore"
    ) from e

logger = logging.getLogger(__name__)

# Substrings of obstore's generic error messages, checked in order.
_GENERIC_ERROR_MARKERS: list[tuple[str, type[ObjectOperationError]]] = [
    ("invalidobjectstate", InvalidObjectStateError),
    ("timed out", RequestTimeoutError),
    ("timeout", RequestTimeoutError),
    ("error sending request", DispatchFailureError),
    ("connection", DispatchFailureError),
    ("error decoding response", ResponseFailureError),
    ("invalid response", ResponseFailureError),
]


def translate_obstore_error(
    exc: BaseException, bucket: str, key: str
) -> ObjectOperationError:
    """
    Convert an exception raised by obstore into the operation error taxonomy.

    Parameters
    ----------
    exc
        The exception raised by obstore.
    bucket
        Bucket the failing request targeted.
    key
        Key the failing request targeted.
    """
    context = {"bucket_name": bucket, "key": key}
    message = str(exc)
    if isinstance(exc, ObstoreNotModifiedError):
        return NotModifiedError("object not modified", **context)
    if isinstance(exc, (NotFoundError, FileNotFoundError)):
        return ObjectNotFoundError("object not found", **context)
    if isinstance(exc, TimeoutError):
        return RequestTimeoutError(f"request timed out: {message}", **context)
    if isinstance(
        exc, (InvalidPathError, NotSupportedError, UnknownConfigurationKeyError)
    ):
        return ConstructionFailureError(f"invalid request: {message}", **context)
    lowered = message.lower()
    for marker, error_class in _GENERIC_ERROR_MARKERS:
        if marker in lowered:
            return error_class(message, **context)
    return UnhandledServiceError(message, code=type(exc).__name__, **context)


class ObstoreTransport:
    """
    A [Transport][obspec_stream.protocols.Transport] backed by obstore.

    Parameters
    ----------
    config
        obstore [S3Config][obstore.store.S3Config] applied to every bucket.
        Settings not given here are read from the environment by obstore
        (`AWS_REGION`, `AWS_ACCESS_KEY_ID`, `AWS_ENDPOINT`, ...).
    client_options
        HTTP client configuration (timeouts, proxies, ...).
    retry_config
        obstore's retry policy. This library does not retry on its own.
    credential_provider
        Optional obstore credential provider.
    store_factory
        Build the store for a bucket name. Overrides all of the above; useful
        to plug in another obstore store (e.g. [MemoryStore][obstore.store.MemoryStore]).
    """

    def __init__(
        self,
        *,
        config: S3Config | None = None,
        client_options: ClientConfig | None = None,
        retry_config: RetryConfig | None = None,
        credential_provider: Any = None,
        store_factory: Callable[[str], ObjectStore] | None = None,
    ) -> None:
        if store_factory is None:
            options: dict[str, Any] = {}
            if config is not None:
                options["config"] = config
            if client_options is not None:
                options["client_options"] = client_options
            if retry_config is not None:
                options["retry_config"] = retry_config
            if credential_provider is not None:
                options["credential_provider"] = credential_provider

            def store_factory(bucket: str) -> ObjectStore:
                return S3Store(bucket, **options)

        self._store_factory = store_factory
        self._stores: dict[str, ObjectStore] = {}
        self._lock = threading.Lock()

    def store(self, bucket: str) -> ObjectStore:
        """Return the store for `bucket`, creating it on first use."""
        with self._lock:
            store = self._stores.get(bucket)
            if store is None:
                try:
                    store = self._store_factory(bucket)
                except UnknownConfigurationKeyError as exc:
                    raise ConstructionFailureError(
                        f"invalid store configuration: {exc}", bucket_name=bucket
                    ) from exc
                self._stores[bucket] = store
            return store

    async def _get(
        self, bucket: str, key: str, options: GetOptions | None
    ) -> GetResultAsync:
        store = self.store(bucket)
        try:
            return await obs.get_async(store, key, options=options)
        except Exception as exc:
            raise translate_obstore_error(exc, bucket, key) from exc

    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        byte_range: tuple[int, int] | None = None,
    ) -> GetResultAsync:
        """
        Fetch an object, or the inclusive byte range `byte_range` of it.

        obstore ranges are end-exclusive, so the inclusive end is shifted by one.
        """
        options: GetOptions | None = None
        if byte_range is not None:
            start, end = byte_range
            options = {"range": (start, end + 1)}
            logger.debug("GET s3://%s/%s bytes=%d-%d", bucket, key, start, end)
        else:
            logger.debug("GET s3://%s/%s", bucket, key)
        return await self._get(bucket, key, options)

    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        if_modified_since: datetime | None = None,
    ) -> ObjectMeta:
        """Fetch the object's metadata, optionally conditional on `if_modified_since`."""
        options: GetOptions = {"head": True}
        if if_modified_since is not None:
            options["if_modified_since"] = if_modified_since
        logger.debug(
            "HEAD s3://%s/%s if_modified_since=%s", bucket, key, if_modified_since
        )
        result = await self._get(bucket, key, options)
        return result.meta

    def __repr__(self) -> str:
        return f"ObstoreTransport(buckets={sorted(self._stores)!r})"


__all__ = ["ObstoreTransport", "translate_obstore_error"]
