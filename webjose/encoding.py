"""Base64url, whitespace and integer helpers shared by the JOSE objects."""

from __future__ import annotations

import base64
import re

__all__ = [
    "JoseError",
    "UnprotectedNonceError",
    "NotSupportedError",
    "UnsupportedKeyTypeError",
    "base64url_encode",
    "base64url_decode",
    "strip_whitespace",
    "int_to_bytes",
    "fixed_size_bytes",
]

_URL_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


class JoseError(ValueError):
    """Base class for every error raised by this package."""


class UnprotectedNonceError(JoseError):
    """A nonce appeared in an unprotected header."""

    def __init__(self, message: str = "Nonce parameter included in unprotected header") -> None:
        super().__init__(message)


class NotSupportedError(JoseError):
    """The requested serialization or operation is not supported for this object."""

    def __init__(self, message: str = "unsupported operation or serialization") -> None:
        super().__init__(message)


class UnsupportedKeyTypeError(JoseError):
    """The key is of a type or shape that cannot be used here."""

    def __init__(self, message: str = "unsupported key type/format") -> None:
        super().__init__(message)


def base64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url text."""
    return base64.urlsafe_b64encode(bytes(data)).rstrip(b"=").decode("ascii")


def base64url_decode(value: str) -> bytes:
    """Decode base64url text; trailing padding and line breaks are tolerated."""
    if not isinstance(value, str):
        raise JoseError(f"expected base64url text, got {type(value).__name__}")
    text = value.rstrip("=").replace("\r", "").replace("\n", "")
    if _URL_ALPHABET.fullmatch(text) is None or len(text) % 4 == 1:
        raise JoseError(f"illegal base64url data: {value!r}")
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def strip_whitespace(value: str) -> str:
    """Remove every whitespace character from a string."""
    return "".join(value.split())


def int_to_bytes(value: int) -> bytes:
    """Big-endian bytes of a non-negative integer, without leading zeros."""
    if value < 0:
        raise JoseError("cannot encode a negative integer")
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def fixed_size_bytes(data: bytes, size: int) -> bytes:
    """Left-pad data with zero bytes to exactly size bytes."""
    data = bytes(data)
    if len(data) > size:
        raise JoseError(f"data of {len(data)} bytes does not fit in {size} bytes")
    return data.rjust(size, b"\x00")