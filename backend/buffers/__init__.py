"""
Encrypted buffer files.

This module provides:
- BufferStore / resolve_name: buffer name resolution and append
- CommandTransform / FernetTransform: the crypto shim backends
"""
from buffers.crypto import CommandTransform, CryptoTransform, FernetTransform, build_transform
from buffers.store import BUFFER_TIMESTAMP_FORMAT, KNOWN_BUFFERS, OVERFLOW_DIR, BufferStore, resolve_name

__all__ = [
    'CommandTransform',
    'CryptoTransform',
    'FernetTransform',
    'build_transform',
    'BUFFER_TIMESTAMP_FORMAT',
    'KNOWN_BUFFERS',
    'OVERFLOW_DIR',
    'BufferStore',
    'resolve_name',
]
