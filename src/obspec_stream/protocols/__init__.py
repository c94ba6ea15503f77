"""Protocols for transports, runners and readers.

This module defines the core protocols used throughout obspec-stream.
"""

from obspec_stream.protocols._protocols import ReadableFile, Runner, Transport

__all__ = ["Transport", "Runner", "ReadableFile"]
