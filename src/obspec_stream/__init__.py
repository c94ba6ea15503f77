from ._version import __version__
from .readers import AsyncObjectReader
from .resources import S3, Bucket, RemoteObject

__all__ = [
    "__version__",
    "AsyncObjectReader",
    "Bucket",
    "RemoteObject",
    "S3",
]
