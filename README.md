# webjose

Parsing and serialization of JOSE objects:

- **JSON Web Keys** (JWK) and key sets, including X.509 certificate chains
  (`x5c`), certificate URLs (`x5u`) and thumbprints (`x5t`, `x5t#S256`), for
  RSA, EC (P-256, P-384, P-521), Ed25519 and symmetric keys.
- **JSON Web Encryption** (JWE) objects in compact and JSON serialization.
- **JSON Web Signature** (JWS) objects in compact, detached-payload and JSON
  serialization.

Asymmetric keys are the `cryptography` library's key objects; symmetric keys
are plain `bytes`. Every error this package raises is a
`webjose.encoding.JoseError`, which is a subclass of `ValueError`.

## Keys

```python
from webjose.jwk import JSONWebKey, JSONWebKeySet

jwk = JSONWebKey.from_json(jwk_text)   # or JSONWebKey.from_dict(members)
jwk.key                 # cryptography key object, or bytes for "oct" keys
jwk.key_id, jwk.algorithm, jwk.use
jwk.certificates        # list of cryptography x509.Certificate
jwk.certificates_url    # the x5u text, or None

jwk.to_dict()           # JWK members
jwk.to_json()           # compact JSON text
jwk.thumbprint("sha256")    # RFC 7638 thumbprint of an RSA, EC or Ed25519 key
jwk.is_public()         # True only for public asymmetric keys
jwk.public()            # copy holding the public half of a private key
jwk.valid()             # True for any asymmetric key

key_set = JSONWebKeySet.from_json(set_text)
key_set.key("my-key-id")    # every key with that kid, in set order
key_set.to_json()
```

When a key is read, the public key of the first certificate in `x5c` must
match the key, and any thumbprints must match that certificate; hex-encoded
thumbprints are accepted and always written back as raw digests.
`webjose.jwk.try_jwks(key, *headers)` picks the first matching key out of a
`JSONWebKeySet` by the first key ID found in the given headers, and otherwise
returns what it was given.

The lower-level helpers live in `webjose.keys` (`key_to_members`,
`members_to_key`, `thumbprint_input`, `curve_size`, `d_size`, `curve_name`)
and `webjose.encoding` (`base64url_encode`, `base64url_decode`,
`strip_whitespace`, `int_to_bytes`, `fixed_size_bytes`).

## Encrypted messages

```python
from webjose.jwe import parse_encrypted

obj = parse_encrypted(
    "eyJhbGciOiJSU0EtT0FFUCIsImVuYyI6IkExMjhHQ00ifQ.dGVzdA.dGVzdA.dGVzdA.dGVzdA"
)
obj.header.algorithm       # "RSA-OAEP"
obj.get_auth_data()        # the "aad" member, or None
obj.compute_auth_data()    # additional authenticated data input
obj.compact_serialize()
obj.full_serialize()
```

Both the compact form (five dot-separated parts) and the JSON form (flattened
or with a `recipients` array) are accepted; whitespace is ignored. Every
recipient must end up with both `alg` and `enc` headers. A `nonce` in an
unprotected header raises `UnprotectedNonceError`; compact serialization of an
object with unprotected headers, per-recipient headers or several recipients
raises `NotSupportedError`.

## Signed messages

```python
from webjose.jws import parse_signed, parse_detached

obj = parse_signed("eyJhbGciOiJYWVoifQ.cGF5bG9hZA.c2lnbmF0dXJl")
obj.payload                # b"payload"
sig = obj.signatures[0]
sig.header.algorithm       # merged protected and unprotected header
sig.protected.algorithm    # signed header only
sig.unprotected            # unsigned header only
sig.signature              # signature bytes

obj.compute_auth_data(obj.payload, sig)   # the signing input
detached = obj.detached_compact_serialize()
again = parse_detached(detached, b"payload")
again.compact_serialize()
obj.full_serialize()
```

The signing input honours a `b64: false` protected header. Embedded JWKs in
signature headers must be valid public keys; anything else is rejected when
the message is parsed, as is a `nonce` in an unprotected header.

## Headers

`webjose.header.Header` is the parsed view of a header, with `key_id`,
`algorithm`, `nonce`, `json_web_key` and every other member in
`extra_headers`. `merge_headers`, `header_nonce`, `serialize_header` and
`parse_header` work on raw header dictionaries.

## What this package does not do

It reads, checks and writes JOSE structures only. It does not encrypt,
decrypt, sign or verify: there is no content encryption, key wrapping or
signature algorithm here, and it does not verify X.509 certificate chains.
There is no command-line program.