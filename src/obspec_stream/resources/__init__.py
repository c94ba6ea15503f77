"""Store, bucket and object handles.

[S3][obspec_stream.S3] produces [Bucket][obspec_stream.Bucket] handles, which
produce [RemoteObject][obspec_stream.RemoteObject] handles. All of them share
one transport.
"""

from obspec_stream.resources._bucket import Bucket
from obspec_stream.resources._object import RemoteObject
from obspec_stream.resources._s3 import S3

__all__ = ["S3", "Bucket", "RemoteObject"]
