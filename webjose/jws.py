"""JWS objects: parsing and serialization in compact and JSON forms."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from webjose.encoding import (
    JoseError,
    NotSupportedError,
    UnprotectedNonceError,
    base64url_decode,
    base64url_encode,
    strip_whitespace,
)
from webjose.header import (
    Header,
    header_nonce,
    merge_headers,
    parse_header,
    serialize_header,
)

__all__ = ["Signature", "JSONWebSignature", "parse_signed", "parse_detached"]


@dataclass
class Signature:
    """One signature over the JWS payload and its protected header.

    ``header`` merges protected and unprotected values and should not be trusted
    on its own; ``protected`` holds only the signed values.
    """

    header: Header = field(default_factory=Header)
    protected: Header = field(default_factory=Header)
    unprotected: Header = field(default_factory=Header)
    signature: bytes | None = None
    raw_protected: dict[str, Any] | None = None
    raw_header: dict[str, Any] | None = None
    original_protected: bytes | None = None


def _json_object(members: list[tuple[str, str | None]]) -> str:
    body = ",".join(
        f"{json.dumps(name)}:{value}" for name, value in members if value is not None
    )
    return "{" + body + "}"


def _buffer_json(data: bytes | None) -> str | None:
    return None if data is None else json.dumps(base64url_encode(data))


def _header_json(raw: Mapping[str, Any] | None) -> str | None:
    return None if raw is None else serialize_header(raw).decode("utf-8")


def _protected_json(raw: Mapping[str, Any] | None) -> str | None:
    return None if raw is None else _buffer_json(serialize_header(raw))


@dataclass
class JSONWebSignature:
    """A signed JWS object after parsing."""

    payload: bytes | None = None
    signatures: list[Signature] = field(default_factory=list)

    def compute_auth_data(self, payload: bytes, signature: Signature) -> bytes:
        """The signing input for a signature over the given payload."""
        if signature.original_protected is not None:
            protected = parse_header(signature.original_protected)
            prefix = base64url_encode(signature.original_protected)
        elif signature.raw_protected is not None:
            protected = signature.raw_protected
            prefix = base64url_encode(serialize_header(protected))
        else:
            protected = {}
            prefix = ""

        b64 = protected.get("b64")
        needs_base64 = b64 if isinstance(b64, bool) else True
        body = base64url_encode(payload).encode("ascii") if needs_base64 else bytes(payload)
        return prefix.encode("ascii") + b"." + body

    def _compact(self, detached: bool) -> str:
        if (
            len(self.signatures) != 1
            or self.signatures[0].raw_header is not None
            or self.signatures[0].raw_protected is None
        ):
            raise NotSupportedError()
        only = self.signatures[0]
        protected = base64url_encode(serialize_header(only.raw_protected))
        payload = "" if detached else base64url_encode(self.payload or b"")
        return f"{protected}.{payload}.{base64url_encode(only.signature or b'')}"

    def compact_serialize(self) -> str:
        """Serialize using the compact format."""
        return self._compact(detached=False)

    def detached_compact_serialize(self) -> str:
        """Serialize using the compact format with the payload left out."""
        return self._compact(detached=True)

    def full_serialize(self) -> str:
        """Serialize using the JSON format, flattened when there is one signature."""
        protected_json = header_json = signature_json = signatures_json = None
        if len(self.signatures) == 1:
            only = self.signatures[0]
            protected_json = _protected_json(only.raw_protected)
            header_json = _header_json(only.raw_header)
            signature_json = _buffer_json(only.signature)
        elif self.signatures:
            signatures_json = "[" + ",".join(
                _json_object(
                    [
                        ("protected", _protected_json(sig.raw_protected)),
                        ("header", _header_json(sig.raw_header)),
                        ("signature", _buffer_json(sig.signature)),
                    ]
                )
                for sig in self.signatures
            ) + "]"
        return _json_object(
            [
                ("payload", _buffer_json(self.payload)),
                ("signatures", signatures_json),
                ("protected", protected_json),
                ("header", header_json),
                ("signature", signature_json),
            ]
        )


def _check_embedded_key(header: Header) -> None:
    jwk = header.json_web_key
    if jwk is not None and (not jwk.valid() or not jwk.is_public()):
        raise JoseError("invalid embedded jwk, must be public key")


def _build_signature(
    raw_protected: dict[str, Any] | None,
    raw_header: dict[str, Any] | None,
    signature: bytes | None,
    original_protected: bytes | None,
) -> Signature:
    sig = Signature(
        signature=signature,
        raw_protected=raw_protected,
        raw_header=raw_header,
        original_protected=original_protected,
    )
    sig.header = Header.from_raw(merge_headers(raw_protected, raw_header))
    if raw_header is not None:
        sig.unprotected = Header.from_raw(raw_header)
    if raw_protected is not None:
        sig.protected = Header.from_raw(raw_protected)
    _check_embedded_key(sig.header)
    return sig


def _sanitize(
    *,
    payload: bytes | None,
    protected: bytes | None,
    header: dict[str, Any] | None,
    signature: bytes | None,
    signatures: list[tuple[bytes | None, dict[str, Any] | None, bytes | None]],
) -> JSONWebSignature:
    if payload is None:
        raise JoseError("missing payload in JWS message")

    obj = JSONWebSignature(payload=payload)

    if not signatures:
        raw_protected = parse_header(protected) if protected else None
        if header_nonce(header):
            raise UnprotectedNonceError()
        obj.signatures.append(_build_signature(raw_protected, header, signature, protected))

    for sig_protected, sig_header, sig_bytes in signatures:
        raw_protected = parse_header(sig_protected) if sig_protected else None
        if header_nonce(sig_header):
            raise UnprotectedNonceError()
        # The per-signature unprotected header is attached only after the views are built.
        built = _build_signature(raw_protected, None, sig_bytes, sig_protected)
        built.raw_header = sig_header
        obj.signatures.append(built)

    return obj


def _buffer_member(document: Mapping[str, Any], name: str) -> bytes | None:
    value = document.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise JoseError(f"invalid '{name}' member: expected a string")
    return base64url_decode(value)


def _header_member(document: Mapping[str, Any], name: str) -> dict[str, Any] | None:
    value = document.get(name)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise JoseError(f"invalid '{name}' member: expected an object")
    return value


def _signature_members(
    value: Any,
) -> list[tuple[bytes | None, dict[str, Any] | None, bytes | None]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise JoseError("invalid 'signatures' member: expected a list")
    members = []
    for entry in value:
        if entry is None:
            entry = {}
        if not isinstance(entry, dict):
            raise JoseError("invalid signature: expected an object")
        members.append(
            (
                _buffer_member(entry, "protected"),
                _header_member(entry, "header"),
                _buffer_member(entry, "signature"),
            )
        )
    return members


def _parse_full(text: str) -> JSONWebSignature:
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise JoseError(f"invalid JSON: {exc}") from None
    if not isinstance(document, dict):
        raise JoseError("a JWS in JSON serialization must be an object")
    return _sanitize(
        payload=_buffer_member(document, "payload"),
        signatures=_signature_members(document.get("signatures")),
        protected=_buffer_member(document, "protected"),
        header=_header_member(document, "header"),
        signature=_buffer_member(document, "signature"),
    )


def _parse_compact(text: str, payload: bytes | None) -> JSONWebSignature:
    parts = text.split(".")
    if len(parts) != 3:
        raise JoseError("compact JWS format must have three parts")
    if parts[1] != "" and payload is not None:
        raise JoseError("payload is not detached")
    protected = base64url_decode(parts[0])
    if payload is None:
        payload = base64url_decode(parts[1])
    signature = base64url_decode(parts[2])
    return _sanitize(
        payload=bytes(payload),
        protected=protected,
        header=None,
        signature=signature,
        signatures=[],
    )


def _as_text(data: str | bytes) -> str:
    if isinstance(data, (bytes, bytearray)):
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise JoseError(f"invalid JWS text: {exc}") from None
    return data


def parse_signed(signature: str | bytes) -> JSONWebSignature:
    """Parse a JWS message in compact or JSON serialization."""
    text = strip_whitespace(_as_text(signature))
    if text.startswith("{"):
        return _parse_full(text)
    return _parse_compact(text, None)


def parse_detached(signature: str | bytes, payload: bytes | None) -> JSONWebSignature:
    """Parse a compact JWS message whose payload is carried separately."""
    if payload is None:
        raise JoseError("nil payload")
    return _parse_compact(strip_whitespace(_as_text(signature)), payload)