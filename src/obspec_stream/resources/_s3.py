from __future__ import annotations

from typing import TYPE_CHECKING, Any

from obspec_stream.resources._bucket import Bucket
from obspec_stream.transports import ObstoreTransport

if TYPE_CHECKING:
    from obstore.store import ClientConfig, RetryConfig, S3Config

    from obspec_stream.protocols import Runner, Transport


class S3:
    """
    Entry point: holds one transport and hands out [Bucket][obspec_stream.Bucket] handles.

    Every bucket and object derived from an `S3` handle shares its transport,
    and with it the transport's connection pools.

    Examples
    --------

    Credentials and region from the environment:

    ```python
    from obspec_stream import S3

    s3 = S3.from_env()
    obj = s3.bucket("my-bucket").object("data/file.bin")
    ```

    Explicit configuration:

    ```python
    s3 = S3.from_config({"region": "us-west-2", "skip_signature": True})
    ```

    Any other [Transport][obspec_stream.protocols.Transport]:

    ```python
    from obspec_stream.transports import AiohttpTransport

    async with S3(AiohttpTransport("http://localhost:9000")) as s3:
        body = await s3.bucket("my-bucket").object("test.nc").get()
    ```
    """

    def __init__(self, transport: Transport, *, runner: Runner | None = None) -> None:
        """
        Parameters
        ----------
        transport
            The transport shared by all derived handles.
        runner
            Runner used by the blocking methods of derived objects. Defaults to
            the process-wide [BackgroundLoopRunner][obspec_stream.runners.BackgroundLoopRunner].
        """
        self.transport = transport
        self._runner = runner

    @classmethod
    def from_env(
        cls,
        *,
        client_options: ClientConfig | None = None,
        retry_config: RetryConfig | None = None,
        runner: Runner | None = None,
    ) -> "S3":
        """Create an `S3` handle whose configuration and credentials come from the environment."""
        transport = ObstoreTransport(
            client_options=client_options, retry_config=retry_config
        )
        return cls(transport, runner=runner)

    @classmethod
    def from_config(
        cls,
        config: S3Config,
        *,
        client_options: ClientConfig | None = None,
        retry_config: RetryConfig | None = None,
        credential_provider: Any = None,
        runner: Runner | None = None,
    ) -> "S3":
        """
        Create an `S3` handle from an explicit obstore [S3Config][obstore.store.S3Config].

        Settings missing from `config` still fall back to the environment.
        """
        transport = ObstoreTransport(
            config=config,
            client_options=client_options,
            retry_config=retry_config,
            credential_provider=credential_provider,
        )
        return cls(transport, runner=runner)

    def bucket(self, name: str) -> Bucket:
        """Return a handle for the bucket `name`."""
        return Bucket(name, self.transport, runner=self._runner)

    async def __aenter__(self) -> "S3":
        """
        Enter the async context manager, opening the transport if it supports it.

        Transports that implement the async context manager protocol (like
        [AiohttpTransport][obspec_stream.transports.AiohttpTransport]) get a
        shared session. Others are unaffected.
        """
        if hasattr(self.transport, "__aenter__"):
            await self.transport.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager, closing the transport if it supports it."""
        if hasattr(self.transport, "__aexit__"):
            await self.transport.__aexit__(exc_type, exc_val, exc_tb)

    def __repr__(self) -> str:
        return f"S3(transport={self.transport!r})"


__all__ = ["S3"]
