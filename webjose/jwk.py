"""JSON Web Keys and key sets."""

from __future__ import annotations

import base64
import binascii
import dataclasses
import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from webjose.encoding import JoseError, base64url_decode, base64url_encode
from webjose.keys import key_to_members, members_to_key, thumbprint_input

__all__ = ["JSONWebKey", "JSONWebKeySet", "try_jwks"]

_FIELD_ORDER = (
    "use", "kty", "kid", "crv", "alg", "k", "x", "y", "n", "e",
    "d", "p", "q", "dp", "dq", "qi", "x5c", "x5u", "x5t", "x5t#S256",
)

_SHA1_SIZE = 20
_SHA256_SIZE = 32

_PUBLIC_TYPES = (ec.EllipticCurvePublicKey, rsa.RSAPublicKey, ed25519.Ed25519PublicKey)
_PRIVATE_TYPES = (ec.EllipticCurvePrivateKey, rsa.RSAPrivateKey, ed25519.Ed25519PrivateKey)


def _certificate_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def _spki(key: Any) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def _public_part(key: Any) -> Any:
    if isinstance(key, _PRIVATE_TYPES):
        return key.public_key()
    if isinstance(key, _PUBLIC_TYPES):
        return key
    return None


def _text(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise JoseError(f"invalid JWK member '{name}': expected a string")
    return value


def _parse_certificates(value: Any) -> list[x509.Certificate]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise JoseError("failed to unmarshal x5c field: expected a list of strings")
    certs = []
    for entry in value:
        if not isinstance(entry, str):
            raise JoseError("failed to unmarshal x5c field: expected a list of strings")
        try:
            der = base64.b64decode(entry, validate=True)
            certs.append(x509.load_der_x509_certificate(der))
        except (binascii.Error, ValueError) as exc:
            raise JoseError(f"failed to unmarshal x5c field: {exc}") from None
    return certs


def _check_url(text: str) -> str:
    prefix = f"parse {json.dumps(text)}"
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in text):
        reason = "net/url: invalid control character in URL"
        raise JoseError(f"invalid JWK, x5u header is invalid URL: {prefix}: {reason}")
    if text.startswith(":"):
        raise JoseError(
            f"invalid JWK, x5u header is invalid URL: {prefix}: missing protocol scheme"
        )
    return text


def _decode_thumbprint(data: Mapping[str, Any], name: str, size: int) -> bytes:
    try:
        raw = base64url_decode(_text(data, name))
    except JoseError:
        raise JoseError(f"invalid JWK, {name} header has invalid encoding") from None
    if len(raw) == 2 * size:
        try:
            raw = bytes.fromhex(raw.decode("ascii"))
        except (ValueError, UnicodeDecodeError) as exc:
            raise JoseError(f"invalid JWK, unable to hex decode {name}: {exc}") from None
    return raw


def _load_json(data: str | bytes) -> Any:
    try:
        return json.loads(data)
    except (ValueError, TypeError) as exc:
        raise JoseError(f"invalid JSON: {exc}") from None


@dataclass
class JSONWebKey:
    """A public, private or symmetric key with its JWK metadata."""

    key: Any = None
    key_id: str = ""
    algorithm: str = ""
    use: str = ""
    certificates: list[x509.Certificate] = field(default_factory=list)
    certificates_url: str | None = None
    certificate_thumbprint_sha1: bytes = b""
    certificate_thumbprint_sha256: bytes = b""

    def to_dict(self) -> dict[str, Any]:
        """JWK members of this key, in canonical field order."""
        members: dict[str, Any] = dict(key_to_members(self.key))
        if self.key_id:
            members["kid"] = self.key_id
        if self.algorithm:
            members["alg"] = self.algorithm
        if self.use:
            members["use"] = self.use
        if self.certificates:
            members["x5c"] = [
                base64.b64encode(_certificate_der(cert)).decode("ascii")
                for cert in self.certificates
            ]

        sha1 = bytes(self.certificate_thumbprint_sha1 or b"")
        sha256 = bytes(self.certificate_thumbprint_sha256 or b"")
        if sha1:
            if len(sha1) != _SHA1_SIZE:
                raise JoseError(
                    f"invalid SHA-1 thumbprint (must be {_SHA1_SIZE} bytes, not {len(sha1)})"
                )
            members["x5t"] = base64url_encode(sha1)
        if sha256:
            if len(sha256) != _SHA256_SIZE:
                raise JoseError(
                    f"invalid SHA-256 thumbprint (must be {_SHA256_SIZE} bytes, not {len(sha256)})"
                )
            members["x5t#S256"] = base64url_encode(sha256)

        if self.certificates:
            leaf = _certificate_der(self.certificates[0])
            if sha1 and sha1 != hashlib.sha1(leaf).digest():
                raise JoseError("invalid SHA-1 thumbprint, does not match cert chain")
            if sha256 and sha256 != hashlib.sha256(leaf).digest():
                raise JoseError("invalid or SHA-256 thumbprint, does not match cert chain")

        if self.certificates_url:
            members["x5u"] = self.certificates_url

        return {name: members[name] for name in _FIELD_ORDER if name in members}

    def to_json(self) -> str:
        """Compact JSON text of this key."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> JSONWebKey:
        """Build a key from decoded JWK members, checking certificates and thumbprints."""
        if not isinstance(data, Mapping):
            raise JoseError("a JWK must be a JSON object")
        certs = _parse_certificates(data.get("x5c"))
        kty = _text(data, "kty")
        if kty == "oct" and certs:
            raise JoseError("invalid JWK, found 'oct' (symmetric) key with cert chain")

        key = members_to_key(data)

        if certs:
            key_pub = _public_part(key)
            try:
                cert_pub = certs[0].public_key()
            except (ValueError, TypeError):
                cert_pub = None
            if cert_pub is not None and key_pub is not None and _spki(cert_pub) != _spki(key_pub):
                raise JoseError(
                    "invalid JWK, public keys in key and x5c fields do not match"
                )

        x5u = _text(data, "x5u")
        url = _check_url(x5u) if x5u else None

        sha1 = _decode_thumbprint(data, "x5t", _SHA1_SIZE)
        sha256 = _decode_thumbprint(data, "x5t#S256", _SHA256_SIZE)
        if sha1 and len(sha1) != _SHA1_SIZE:
            raise JoseError("invalid JWK, x5t header is of incorrect size")
        if sha256 and len(sha256) != _SHA256_SIZE:
            raise JoseError("invalid JWK, x5t#S256 header is of incorrect size")

        if certs:
            leaf = _certificate_der(certs[0])
            if sha1 and hashlib.sha1(leaf).digest() != sha1:
                raise JoseError("invalid JWK, x5c thumbprint does not match x5t value")
            if sha256 and hashlib.sha256(leaf).digest() != sha256:
                raise JoseError("invalid JWK, x5c thumbprint does not match x5t#S256 value")

        return cls(
            key=key,
            key_id=_text(data, "kid"),
            algorithm=_text(data, "alg"),
            use=_text(data, "use"),
            certificates=certs,
            certificates_url=url,
            certificate_thumbprint_sha1=sha1,
            certificate_thumbprint_sha256=sha256,
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> JSONWebKey:
        """Parse a key from JWK JSON text."""
        return cls.from_dict(_load_json(data))

    def thumbprint(self, hash_name: str) -> bytes:
        """JWK thumbprint of the key using the named hashlib algorithm."""
        return hashlib.new(hash_name, thumbprint_input(self.key).encode("ascii")).digest()

    def is_public(self) -> bool:
        """True for public asymmetric keys only."""
        return isinstance(self.key, _PUBLIC_TYPES)

    def public(self) -> JSONWebKey:
        """Copy holding the public half of an asymmetric key; an empty key otherwise."""
        if self.is_public():
            return dataclasses.replace(self)
        if isinstance(self.key, _PRIVATE_TYPES):
            return dataclasses.replace(self, key=self.key.public_key())
        return JSONWebKey()

    def valid(self) -> bool:
        """True when the key is a usable asymmetric key."""
        return isinstance(self.key, _PUBLIC_TYPES + _PRIVATE_TYPES)


@dataclass
class JSONWebKeySet:
    """A JWK Set."""

    keys: list[JSONWebKey] = field(default_factory=list)

    def key(self, kid: str) -> list[JSONWebKey]:
        """All keys carrying the given key ID, in set order."""
        return [entry for entry in self.keys if entry.key_id == kid]

    def to_json(self) -> str:
        """Compact JSON text of the set."""
        return json.dumps(
            {"keys": [entry.to_dict() for entry in self.keys]}, separators=(",", ":")
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> JSONWebKeySet:
        """Parse a JWK Set from JSON text."""
        decoded = _load_json(data)
        if not isinstance(decoded, Mapping):
            raise JoseError("a JWK Set must be a JSON object")
        entries = decoded.get("keys")
        if entries is None:
            return cls()
        if not isinstance(entries, list):
            raise JoseError("the 'keys' member of a JWK Set must be a list")
        return cls([JSONWebKey.from_dict(entry) for entry in entries])


def try_jwks(key: Any, *args: Any) -> Any:
    """Pick a key out of a key set by the first key ID found in the given headers."""
    if not isinstance(key, JSONWebKeySet):
        return key
    kid = next((h.key_id for h in args if getattr(h, "key_id", "")), "")
    if not kid:
        return key
    matches = key.key(kid)
    return matches[0].key if matches else key