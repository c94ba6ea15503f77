from __future__ import annotations

from typing import TYPE_CHECKING

from obspec_stream.resources._object import RemoteObject

if TYPE_CHECKING:
    from obspec_stream.protocols import Runner, Transport


class Bucket:
    """A named bucket. Produces [RemoteObject][obspec_stream.RemoteObject] handles by key."""

    def __init__(
        self, name: str, transport: Transport, *, runner: Runner | None = None
    ) -> None:
        self.name = name
        self.transport = transport
        self._runner = runner

    def object(self, key: str) -> RemoteObject:
        """Return a handle for `key`. No request is made until it is used."""
        return RemoteObject(self.name, key, self.transport, runner=self._runner)

    def __repr__(self) -> str:
        return f"Bucket({self.name!r}, transport={self.transport!r})"


__all__ = ["Bucket"]
