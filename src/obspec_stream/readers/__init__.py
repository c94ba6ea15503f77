"""Readers for object bodies.

This module provides readers that wrap response bodies with a file-like
interface.
"""

from obspec_stream.readers._async import AsyncObjectReader

__all__ = ["AsyncObjectReader"]
