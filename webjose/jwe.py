"""JWE objects: parsing and serialization in compact and JSON forms."""

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

__all__ = ["JSONWebEncryption", "parse_encrypted"]


@dataclass
class _Recipient:
    header: dict[str, Any] | None = None
    encrypted_key: bytes | None = None


def _get_string(raw: Mapping[str, Any], name: str) -> str:
    value = raw.get(name)
    return value if isinstance(value, str) else ""


def _json_object(members: list[tuple[str, str | None]]) -> str:
    body = ",".join(f"{json.dumps(name)}:{value}" for name, value in members if value is not None)
    return "{" + body + "}"


def _buffer_json(data: bytes | None) -> str | None:
    return None if data is None else json.dumps(base64url_encode(data))


def _header_json(raw: Mapping[str, Any] | None) -> str | None:
    return None if raw is None else serialize_header(raw).decode("utf-8")


@dataclass
class JSONWebEncryption:
    """An encrypted JWE object after parsing."""

    header: Header = field(default_factory=Header)
    protected: dict[str, Any] | None = None
    unprotected: dict[str, Any] | None = None
    recipients: list[_Recipient] = field(default_factory=list)
    aad: bytes | None = None
    iv: bytes | None = None
    ciphertext: bytes | None = None
    tag: bytes | None = None
    original_protected: bytes | None = None

    def get_auth_data(self) -> bytes | None:
        """The optional additional authenticated data attached to the object."""
        return None if self.aad is None else bytes(self.aad)

    def _merged_headers(self, recipient: _Recipient | None) -> dict[str, Any]:
        return merge_headers(
            self.protected,
            self.unprotected,
            recipient.header if recipient is not None else None,
        )

    def compute_auth_data(self) -> bytes:
        """The additional authenticated data input for the content encryption."""
        if self.original_protected is not None:
            protected = base64url_encode(self.original_protected)
        elif self.protected is not None:
            protected = base64url_encode(serialize_header(self.protected))
        else:
            protected = ""
        output = protected.encode("ascii")
        if self.aad is not None:
            output += b"." + base64url_encode(self.aad).encode("ascii")
        return output

    def compact_serialize(self) -> str:
        """Serialize using the compact format; needs one recipient and only protected headers."""
        if (
            len(self.recipients) != 1
            or self.unprotected is not None
            or self.protected is None
            or self.recipients[0].header is not None
        ):
            raise NotSupportedError()
        parts = (
            self.recipients[0].encrypted_key,
            self.iv,
            self.ciphertext,
            self.tag,
        )
        return ".".join(
            [base64url_encode(serialize_header(self.protected))]
            + [base64url_encode(part or b"") for part in parts]
        )

    def full_serialize(self) -> str:
        """Serialize using the JSON format, flattened when there is one recipient."""
        if not self.recipients:
            raise JoseError("JWE object has no recipients")
        first = self.recipients[0]

        if len(self.recipients) > 1:
            header_json = None
            recipients_json = "[" + ",".join(
                _json_object(
                    [
                        ("header", _header_json(recipient.header)),
                        (
                            "encrypted_key",
                            json.dumps(base64url_encode(recipient.encrypted_key))
                            if recipient.encrypted_key
                            else None,
                        ),
                    ]
                )
                for recipient in self.recipients
            ) + "]"
        else:
            header_json = _header_json(first.header)
            recipients_json = None

        protected_json = (
            _buffer_json(serialize_header(self.protected))
            if self.protected is not None
            else None
        )
        return _json_object(
            [
                ("protected", protected_json),
                ("unprotected", _header_json(self.unprotected)),
                ("header", header_json),
                ("recipients", recipients_json),
                ("aad", _buffer_json(self.aad)),
                ("encrypted_key", _buffer_json(first.encrypted_key)),
                ("iv", _buffer_json(self.iv)),
                ("ciphertext", _buffer_json(self.ciphertext)),
                ("tag", _buffer_json(self.tag)),
            ]
        )


def _sanitize(
    *,
    protected: bytes | None,
    unprotected: dict[str, Any] | None,
    header: dict[str, Any] | None,
    recipients: list[tuple[dict[str, Any] | None, str]],
    aad: bytes | None,
    encrypted_key: bytes | None,
    iv: bytes | None,
    ciphertext: bytes | None,
    tag: bytes | None,
) -> JSONWebEncryption:
    if header_nonce(unprotected) or header_nonce(header):
        raise UnprotectedNonceError()

    parsed_protected = None
    if protected:
        try:
            parsed_protected = parse_header(protected)
        except JoseError as exc:
            raise JoseError(
                f"invalid protected header: {exc}, {base64url_encode(protected)}"
            ) from None

    obj = JSONWebEncryption(
        protected=parsed_protected,
        unprotected=unprotected,
        aad=aad,
        iv=iv,
        ciphertext=ciphertext,
        tag=tag,
        original_protected=protected,
    )

    merged = obj._merged_headers(None)
    try:
        obj.header = Header.from_raw(merged)
    except JoseError as exc:
        raise JoseError(f"cannot sanitize merged headers: {exc} ({merged})") from None

    if not recipients:
        obj.recipients = [_Recipient(header=header, encrypted_key=encrypted_key)]
    else:
        for recipient_header, key_text in recipients:
            key = base64url_decode(key_text)
            if header_nonce(recipient_header):
                raise UnprotectedNonceError()
            obj.recipients.append(_Recipient(header=recipient_header, encrypted_key=key))

    for recipient in obj.recipients:
        headers = obj._merged_headers(recipient)
        if not _get_string(headers, "alg") or not _get_string(headers, "enc"):
            raise JoseError("message is missing alg/enc headers")

    return obj


def _buffer_member(document: Mapping[str, Any], name: str) -> bytes | None:
    value = document.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise JoseError(f"invalid '{name}' member: expected a string")
    if value == "":
        return None
    return base64url_decode(value)


def _header_member(document: Mapping[str, Any], name: str) -> dict[str, Any] | None:
    value = document.get(name)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise JoseError(f"invalid '{name}' member: expected an object")
    return value


def _recipient_members(value: Any) -> list[tuple[dict[str, Any] | None, str]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise JoseError("invalid 'recipients' member: expected a list")
    members = []
    for entry in value:
        if entry is None:
            entry = {}
        if not isinstance(entry, dict):
            raise JoseError("invalid recipient: expected an object")
        key_text = entry.get("encrypted_key")
        if key_text is None:
            key_text = ""
        elif not isinstance(key_text, str):
            raise JoseError("invalid recipient 'encrypted_key': expected a string")
        members.append((_header_member(entry, "header"), key_text))
    return members


def _parse_full(text: str) -> JSONWebEncryption:
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise JoseError(f"invalid JSON: {exc}") from None
    if not isinstance(document, dict):
        raise JoseError("a JWE in JSON serialization must be an object")
    return _sanitize(
        protected=_buffer_member(document, "protected"),
        unprotected=_header_member(document, "unprotected"),
        header=_header_member(document, "header"),
        recipients=_recipient_members(document.get("recipients")),
        aad=_buffer_member(document, "aad"),
        encrypted_key=_buffer_member(document, "encrypted_key"),
        iv=_buffer_member(document, "iv"),
        ciphertext=_buffer_member(document, "ciphertext"),
        tag=_buffer_member(document, "tag"),
    )


def _parse_compact(text: str) -> JSONWebEncryption:
    parts = text.split(".")
    if len(parts) != 5:
        raise JoseError("compact JWE format must have five parts")
    protected, encrypted_key, iv, ciphertext, tag = (base64url_decode(part) for part in parts)
    return _sanitize(
        protected=protected,
        unprotected=None,
        header=None,
        recipients=[],
        aad=None,
        encrypted_key=encrypted_key,
        iv=iv,
        ciphertext=ciphertext,
        tag=tag,
    )


def parse_encrypted(data: str | bytes) -> JSONWebEncryption:
    """Parse a JWE message in compact or JSON serialization."""
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise JoseError(f"invalid JWE text: {exc}") from None
    text = strip_whitespace(data)
    if text.startswith("{"):
        return _parse_full(text)
    return _parse_compact(text)