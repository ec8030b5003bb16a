"""Conversion between cryptography key objects and JWK key members."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from webjose.encoding import (
    JoseError,
    base64url_decode,
    base64url_encode,
    fixed_size_bytes,
    int_to_bytes,
)

__all__ = [
    "curve_size",
    "d_size",
    "curve_name",
    "key_to_members",
    "members_to_key",
    "thumbprint_input",
]

_CURVES = {
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "P-521": ec.SECP521R1,
}
_CURVE_NAMES = {cls.name: name for name, cls in _CURVES.items()}

_BYTE_MEMBERS = ("k", "x", "y", "n", "e", "d", "p", "q", "dp", "dq", "qi")

_ED_SIZE = 32


def curve_size(curve: ec.EllipticCurve) -> int:
    """Size in bytes of one coordinate on the curve."""
    return (curve.key_size + 7) // 8


def d_size(curve: ec.EllipticCurve) -> int:
    """Size in bytes of the private scalar "d" for the curve."""
    bits = curve.key_size
    size = bits // 8
    if bits % 8:
        size += 1
    return size


def curve_name(curve: ec.EllipticCurve) -> str:
    """JWK name ("P-256", "P-384", "P-521") of a supported curve."""
    try:
        return _CURVE_NAMES[curve.name]
    except (KeyError, AttributeError):
        raise JoseError("unsupported/unknown elliptic curve") from None


def _raw_public(key: ed25519.Ed25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


def _raw_seed(key: ed25519.Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )


def _ec_public_members(key: ec.EllipticCurvePublicKey) -> dict[str, str]:
    numbers = key.public_numbers()
    name = curve_name(key.curve)
    size = curve_size(key.curve)
    x = int_to_bytes(numbers.x)
    y = int_to_bytes(numbers.y)
    if len(x) > size or len(y) > size:
        raise JoseError("invalid EC key (X/Y too large)")
    return {
        "kty": "EC",
        "crv": name,
        "x": base64url_encode(fixed_size_bytes(x, size)),
        "y": base64url_encode(fixed_size_bytes(y, size)),
    }


def _rsa_public_members(key: rsa.RSAPublicKey) -> dict[str, str]:
    numbers = key.public_numbers()
    return {
        "kty": "RSA",
        "n": base64url_encode(int_to_bytes(numbers.n)),
        "e": base64url_encode(int_to_bytes(numbers.e)),
    }


def _ed_public_members(key: ed25519.Ed25519PublicKey) -> dict[str, str]:
    return {"kty": "OKP", "crv": "Ed25519", "x": base64url_encode(_raw_public(key))}


def key_to_members(key: Any) -> dict[str, str]:
    """JWK members (kty, crv and base64url key material) describing a key."""
    if isinstance(key, ed25519.Ed25519PublicKey):
        return _ed_public_members(key)
    if isinstance(key, ec.EllipticCurvePublicKey):
        return _ec_public_members(key)
    if isinstance(key, rsa.RSAPublicKey):
        return _rsa_public_members(key)
    if isinstance(key, ed25519.Ed25519PrivateKey):
        members = _ed_public_members(key.public_key())
        members["d"] = base64url_encode(_raw_seed(key))
        return members
    if isinstance(key, ec.EllipticCurvePrivateKey):
        members = _ec_public_members(key.public_key())
        d = int_to_bytes(key.private_numbers().private_value)
        members["d"] = base64url_encode(fixed_size_bytes(d, d_size(key.curve)))
        return members
    if isinstance(key, rsa.RSAPrivateKey):
        private = key.private_numbers()
        members = _rsa_public_members(key.public_key())
        for name, value in (
            ("d", private.d),
            ("p", private.p),
            ("q", private.q),
            ("dp", private.dmp1),
            ("dq", private.dmq1),
            ("qi", private.iqmp),
        ):
            members[name] = base64url_encode(int_to_bytes(value))
        return members
    if isinstance(key, (bytes, bytearray)):
        return {"kty": "oct", "k": base64url_encode(bytes(key))}
    raise JoseError(f"unknown key type '{type(key).__name__}'")


def _byte_member(members: Mapping[str, Any], name: str) -> bytes | None:
    value = members.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise JoseError(f"invalid JWK member '{name}': expected a string")
    if value == "":
        return b""
    return base64url_decode(value)


def _text_member(members: Mapping[str, Any], name: str) -> str:
    value = members.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise JoseError(f"invalid JWK member '{name}': expected a string")
    return value


def _ec_curve(crv: str) -> ec.EllipticCurve:
    try:
        return _CURVES[crv]()
    except KeyError:
        raise JoseError(f"unsupported elliptic curve '{crv}'") from None


def _ec_public_numbers(
    curve: ec.EllipticCurve, raw: dict[str, bytes | None], kind: str
) -> ec.EllipticCurvePublicNumbers:
    size = curve_size(curve)
    if len(raw["x"]) != size:
        raise JoseError(f"invalid EC {kind} key, wrong length for x")
    if len(raw["y"]) != size:
        raise JoseError(f"invalid EC {kind} key, wrong length for y")
    return ec.EllipticCurvePublicNumbers(
        int.from_bytes(raw["x"], "big"), int.from_bytes(raw["y"], "big"), curve
    )


def _check_on_curve(numbers: ec.EllipticCurvePublicNumbers) -> ec.EllipticCurvePublicKey:
    try:
        return numbers.public_key()
    except ValueError:
        raise JoseError("invalid EC key, X/Y are not on declared curve") from None


def _ec_public_key(crv: str, raw: dict[str, bytes | None]) -> ec.EllipticCurvePublicKey:
    curve = _ec_curve(crv)
    if raw["x"] is None or raw["y"] is None:
        raise JoseError("invalid EC key, missing x/y values")
    return _check_on_curve(_ec_public_numbers(curve, raw, "public"))


def _ec_private_key(crv: str, raw: dict[str, bytes | None]) -> ec.EllipticCurvePrivateKey:
    curve = _ec_curve(crv)
    if raw["x"] is None or raw["y"] is None or raw["d"] is None:
        raise JoseError("invalid EC private key, missing x/y/d values")
    public_numbers = _ec_public_numbers(curve, raw, "private")
    if len(raw["d"]) != d_size(curve):
        raise JoseError("invalid EC private key, wrong length for d")
    _check_on_curve(public_numbers)
    try:
        return ec.EllipticCurvePrivateNumbers(
            int.from_bytes(raw["d"], "big"), public_numbers
        ).private_key()
    except ValueError as exc:
        raise JoseError(f"invalid EC private key: {exc}") from None


def _rsa_public_key(raw: dict[str, bytes | None]) -> rsa.RSAPublicKey:
    if raw["n"] is None or raw["e"] is None:
        raise JoseError("invalid RSA key, missing n/e values")
    try:
        return rsa.RSAPublicNumbers(
            int.from_bytes(raw["e"], "big"), int.from_bytes(raw["n"], "big")
        ).public_key()
    except ValueError as exc:
        raise JoseError(f"invalid RSA public key: {exc}") from None


def _rsa_private_key(raw: dict[str, bytes | None]) -> rsa.RSAPrivateKey:
    for name in ("n", "e", "d", "p", "q"):
        if raw[name] is None:
            raise JoseError(
                f"invalid RSA private key, missing {name.upper()} value(s)"
            )
    n, e, d, p, q = (int.from_bytes(raw[name], "big") for name in ("n", "e", "d", "p", "q"))
    try:
        dmp1 = int.from_bytes(raw["dp"], "big") if raw["dp"] is not None else rsa.rsa_crt_dmp1(d, p)
        dmq1 = int.from_bytes(raw["dq"], "big") if raw["dq"] is not None else rsa.rsa_crt_dmq1(d, q)
        iqmp = int.from_bytes(raw["qi"], "big") if raw["qi"] is not None else rsa.rsa_crt_iqmp(p, q)
        return rsa.RSAPrivateNumbers(
            p, q, d, dmp1, dmq1, iqmp, rsa.RSAPublicNumbers(e, n)
        ).private_key()
    except (ValueError, ZeroDivisionError) as exc:
        raise JoseError(f"invalid RSA private key: {exc}") from None


def _fit_ed(data: bytes) -> bytes:
    return data[:_ED_SIZE].ljust(_ED_SIZE, b"\x00")


def _ed_private_key(raw: dict[str, bytes | None]) -> ed25519.Ed25519PrivateKey:
    if raw["d"] is None:
        raise JoseError("invalid Ed25519 private key, missing D value(s)")
    if raw["x"] is None:
        raise JoseError("invalid Ed25519 private key, missing X value(s)")
    return ed25519.Ed25519PrivateKey.from_private_bytes(_fit_ed(raw["d"]))


def _ed_public_key(raw: dict[str, bytes | None]) -> ed25519.Ed25519PublicKey:
    if raw["x"] is None:
        raise JoseError("invalid Ed key, missing x value")
    try:
        return ed25519.Ed25519PublicKey.from_public_bytes(_fit_ed(raw["x"]))
    except ValueError as exc:
        raise JoseError(f"invalid Ed key: {exc}") from None


def members_to_key(members: Mapping[str, Any]) -> Any:
    """Build a key object from the members of a JWK object."""
    if not isinstance(members, Mapping):
        raise JoseError("a JWK must be a JSON object")
    raw = {name: _byte_member(members, name) for name in _BYTE_MEMBERS}
    kty = _text_member(members, "kty")
    crv = _text_member(members, "crv")

    if kty == "EC":
        return _ec_private_key(crv, raw) if raw["d"] is not None else _ec_public_key(crv, raw)
    if kty == "RSA":
        return _rsa_private_key(raw) if raw["d"] is not None else _rsa_public_key(raw)
    if kty == "oct":
        if raw["k"] is None:
            raise JoseError("invalid OCT (symmetric) key, missing k value")
        return raw["k"]
    if kty == "OKP":
        if crv == "Ed25519" and raw["x"] is not None:
            return _ed_private_key(raw) if raw["d"] is not None else _ed_public_key(raw)
        raise JoseError(f"unknown curve {crv}'")
    raise JoseError(f"unknown json web key type '{kty}'")


def thumbprint_input(key: Any) -> str:
    """Canonical JSON text hashed to form a JWK thumbprint."""
    if isinstance(key, ed25519.Ed25519PrivateKey):
        key = key.public_key()
    if isinstance(key, ed25519.Ed25519PublicKey):
        x = base64url_encode(fixed_size_bytes(_raw_public(key), _ED_SIZE))
        return '{"crv":"Ed25519","kty":"OKP","x":"%s"}' % x
    if isinstance(key, ec.EllipticCurvePrivateKey):
        key = key.public_key()
    if isinstance(key, ec.EllipticCurvePublicKey):
        size = curve_size(key.curve)
        crv = curve_name(key.curve)
        numbers = key.public_numbers()
        x = int_to_bytes(numbers.x)
        y = int_to_bytes(numbers.y)
        if len(x) > size or len(y) > size:
            raise JoseError("invalid elliptic key (too large)")
        return '{"crv":"%s","kty":"EC","x":"%s","y":"%s"}' % (
            crv,
            base64url_encode(fixed_size_bytes(x, size)),
            base64url_encode(fixed_size_bytes(y, size)),
        )
    if isinstance(key, rsa.RSAPrivateKey):
        key = key.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        numbers = key.public_numbers()
        return '{"e":"%s","kty":"RSA","n":"%s"}' % (
            base64url_encode(int_to_bytes(numbers.e)),
            base64url_encode(int_to_bytes(numbers.n)),
        )
    raise JoseError(f"unknown key type '{type(key).__name__}'")