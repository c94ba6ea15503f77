"""Transport implementations.

This module provides concrete transports that can be passed to
[S3][obspec_stream.S3] or used directly.
"""

from obspec_stream.transports._aiohttp import AiohttpGetResultAsync, AiohttpTransport
from obspec_stream.transports._obstore import ObstoreTransport

__all__ = [
    "AiohttpTransport",
    "AiohttpGetResultAsync",
    "ObstoreTransport",
]
