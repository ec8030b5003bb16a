"""JOSE header maps: merging, serialization and the parsed Header view."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from webjose.encoding import JoseError
from webjose.jwk import JSONWebKey

__all__ = ["Header", "merge_headers", "header_nonce", "serialize_header", "parse_header"]

_ESCAPE_TABLE = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


def _string_member(raw: Mapping[str, Any], name: str) -> str:
    value = raw.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise JoseError(f"invalid '{name}' header: expected a string")
    return value


@dataclass
class Header:
    """Parsed view of a JOSE header: registered fields plus any extra ones."""

    key_id: str = ""
    json_web_key: JSONWebKey | None = None
    algorithm: str = ""
    nonce: str = ""
    extra_headers: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> Header:
        """Build a Header from a raw header map; null values are ignored."""
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise JoseError("a JOSE header must be a JSON object")
        header = cls()
        for name, value in raw.items():
            if value is None:
                continue
            if name == "kid":
                header.key_id = _string_member(raw, name)
            elif name == "alg":
                header.algorithm = _string_member(raw, name)
            elif name == "nonce":
                header.nonce = _string_member(raw, name)
            elif name == "jwk":
                try:
                    header.json_web_key = JSONWebKey.from_dict(value)
                except JoseError as exc:
                    raise JoseError(f"invalid 'jwk' header: {exc}") from None
            else:
                header.extra_headers[name] = value
        return header


def merge_headers(*args: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge raw header maps; the first map holding a non-null value for a name wins."""
    merged: dict[str, Any] = {}
    for source in args:
        if source is None:
            continue
        for name, value in source.items():
            if merged.get(name) is not None:
                continue
            merged[name] = value
    return merged


def header_nonce(raw: Mapping[str, Any] | None) -> str:
    """The nonce of a raw header map, or an empty string if there is none."""
    if raw is None:
        return ""
    value = raw.get("nonce")
    return value if isinstance(value, str) else ""


def serialize_header(raw: Mapping[str, Any] | None) -> bytes:
    """Compact JSON bytes of a raw header map, with top-level names sorted."""
    if raw is None:
        return b"null"
    ordered = {name: raw[name] for name in sorted(raw)}
    try:
        text = json.dumps(
            ordered, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        )
    except (TypeError, ValueError) as exc:
        raise JoseError(f"cannot serialize header: {exc}") from None
    return text.translate(_ESCAPE_TABLE).encode("utf-8")


def parse_header(data: bytes | str) -> dict[str, Any]:
    """Parse JSON text into a raw header map."""
    try:
        decoded = json.loads(data)
    except (TypeError, ValueError) as exc:
        raise JoseError(f"invalid header JSON: {exc}") from None
    if not isinstance(decoded, dict):
        raise JoseError("a JOSE header must be a JSON object")
    return decoded