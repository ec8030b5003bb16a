import base64

import pytest

from webjose.encoding import JoseError, NotSupportedError, UnprotectedNonceError
from webjose.jws import JSONWebSignature, Signature, parse_detached, parse_signed

ES512_SIGNATURE = (
    "AeYNFC1rwIgQv-5fwd8iRyYzvTaSCYTEICepgu9gRId-IW99kbSVY7yH0MvrQnqI-a0L8zwKWDR35fW5dukPAYRkADp3"
    "Y1lzqdShFcEFziUVGo46vqbiSajmKFrjBktJcCsfjKSaLHwxErF-T10YYPCQFHWb2nXJOOI3CZfACYqgO84g"
)


def test_embedded_hmac_key_rejected():
    msg = (
        '{"payload":"TG9yZW0gaXBzdW0gZG9sb3Igc2l0IGFtZXQ",'
        '"protected":"eyJhbGciOiJIUzI1NiIsICJqd2siOnsia3R5Ijoib2N0IiwgImsiOiJNVEV4In19",'
        '"signature":"lvo41ZZsuHwQvSh0uJtEXRR3vmuBJ7in6qMoD7p9jyo"}'
    )
    with pytest.raises(JoseError, match="must be public key"):
        parse_signed(msg)


def test_compact_parse_valid():
    obj = parse_signed("eyJhbGciOiJYWVoifQ.cGF5bG9hZA.c2lnbmF0dXJl")
    assert obj.payload == b"payload"
    assert len(obj.signatures) == 1
    assert obj.signatures[0].signature == b"signature"
    assert obj.signatures[0].protected.algorithm == "XYZ"


def test_compact_parse_detached_missing_payload():
    obj = parse_signed("eyJhbGciOiJYWVoifQ..c2lnbmF0dXJl")
    assert obj.payload == b""
    assert obj.signatures[0].signature == b"signature"


@pytest.mark.parametrize(
    "msg",
    [
        "eyJhbGciOiJYWVoifQ.cGF5bG9hZA",
        "eyJhbGciOiJYWVoifQ.cGF5bG9hZA.////",
        "eyJhbGciOiJYWVoifQ.////.c2lnbmF0dXJl",
        "////.eyJhbGciOiJYWVoifQ.c2lnbmF0dXJl",
        "cGF5bG9hZA.cGF5bG9hZA.c2lnbmF0dXJl",
    ],
)
def test_compact_parse_failures(msg):
    with pytest.raises(JoseError):
        parse_signed(msg)


def test_full_parse_valid():
    msg = (
        '{"payload":"CUJD","signatures":[{"protected":"e30","header":{"kid":"XYZ"},'
        '"signature":"CUJD"},{"protected":"e30","signature":"CUJD"}]}'
    )
    obj = parse_signed(msg)
    assert obj.payload == base64.urlsafe_b64decode("CUJD")
    assert len(obj.signatures) == 2
    assert obj.signatures[0].raw_header == {"kid": "XYZ"}
    assert obj.signatures[1].raw_header is None
    assert obj.signatures[0].raw_protected == {}


@pytest.mark.parametrize(
    "msg",
    [
        "{}",
        "{XX",
        '{"payload":"CUJD","signatures":[{"protected":"CUJD","header":{"kid":"XYZ"},"signature":"CUJD"}]}',
        '{"payload":"CUJD","protected":"CUJD","header":{"kid":"XYZ"},"signature":"CUJD"}',
        '{"payload":"CUJD","signatures":[{"protected":"###","header":{"kid":"XYZ"},"signature":"CUJD"}]}',
        '{"payload":"###","signatures":[{"protected":"CUJD","header":{"kid":"XYZ"},"signature":"CUJD"}]}',
        '{"payload":"CUJD","signatures":[{"protected":"e30","header":{"kid":"XYZ"},"signature":"###"}]}',
    ],
)
def test_full_parse_failures(msg):
    with pytest.raises(JoseError):
        parse_signed(msg)


def test_reject_unprotected_nonce_flattened():
    msg = """{
        "header": { "nonce": "should-cause-an-error" },
        "payload": "does-not-matter",
        "signature": "does-not-matter"
    }"""
    with pytest.raises(UnprotectedNonceError):
        parse_signed(msg)


def test_reject_unprotected_nonce_full():
    msg = """{
        "payload": "does-not-matter",
        "signatures": [{
            "header": { "nonce": "should-cause-an-error" },
            "signature": "does-not-matter"
        }]
    }"""
    with pytest.raises(UnprotectedNonceError):
        parse_signed(msg)


def test_flattened_with_included_unprotected_key():
    msg = """{
        "header": {
            "alg": "RS256",
            "jwk": {
                "e": "AQAB",
                "kty": "RSA",
                "n": "tSwgy3ORGvc7YJI9B2qqkelZRUC6F1S5NwXFvM4w5-M0TsxbFsH5UH6adigV0jzsDJ5imAechcSoOhAh9POceCbPN1sTNwLpNbOLiQQ7RD5mY_pSUHWXNmS9R4NZ3t2fQAzPeW7jOfF0LKuJRGkekx6tXP1uSnNibgpJULNc4208dgBaCHo3mvaE2HV2GmVl1yxwWX5QZZkGQGjNDZYnjFfa2DKVvFs0QbAk21ROm594kAxlRlMMrvqlf24Eq4ERO0ptzpZgm_3j_e4hGRD39gJS7kAzK-j2cacFQ5Qi2Y6wZI2p-FCq_wiYsfEAIkATPBiLKl_6d_Jfcvs_impcXQ"
            }
        },
        "payload": "Zm9vCg",
        "signature": "hRt2eYqBd_MyMRNIh8PEIACoFtmBi7BHTLBaAhpSU6zyDAFdEBaX7us4VB9Vo1afOL03Q8iuoRA0AT4akdV_mQTAQ_jhTcVOAeXPr0tB8b8Q11UPQ0tXJYmU4spAW2SapJIvO50ntUaqU05kZd0qw8-noH1Lja-aNnU-tQII4iYVvlTiRJ5g8_CADsvJqOk6FcHuo2mG643TRnhkAxUtazvHyIHeXMxydMMSrpwUwzMtln4ZJYBNx4QGEq6OhpAD_VSp-w8Lq5HOwGQoNs0bPxH1SGrArt67LFQBfjlVr94E1sn26p4vigXm83nJdNhWAMHHE9iV67xN-r29LT-FjA"
    }"""
    obj = parse_signed(msg)
    assert len(obj.signatures) == 1
    sig = obj.signatures[0]
    assert sig.header.json_web_key is not None
    assert sig.header.json_web_key.is_public()
    assert sig.header.algorithm == "RS256"
    assert obj.payload == b"foo\n"


def test_flattened_with_private_protected_field():
    protected = "eyJub25jZSI6IjhISWVwVU5GWlVhLWV4S1RyWFZmNGcifQ"
    msg = (
        '{"header":{"alg":"RS256","jwk":{"kty":"RSA","n":"7ixeydcbxxppzxrBphrW1atUiEZqTpiHDpI-79olav5X'
        "xAgWolHmVsJyxzoZXRxmtED8PF9-EICZWBGdSAL9ZTD0hLUCIsPcpdgT_LqNW3Sh2b2caPL2hbMF7vsXvnCGg9varpnHWu"
        "YTyRrCLUF9vM7ES-V3VCYTa7LcCSRm56Gg9r19qar43Z9kIKBBxpgt723v2cC4bmLmoAX2s217ou3uCpCXGLOeV_BesG4-"
        "-Nl3pso1VhCfO85wEWjmW6lbv7Kg4d7Jdkv5DjDZfJ086fkEAYZVYGRpIgAvJBH3d3yKDCrSByUEud1bWuFjQBmMaeYOrVD"
        'XO_mbYg5PwUDMhw","e":"AQAB"}},"protected":"' + protected + '",'
        '"payload":"eyJjb250YWN0IjpbIm1haWx0bzpmb29AYmFyLmNvbSJdfQ","signature":"AyvVGMgXsQ1zTdXrZxE"}'
    )
    obj = parse_signed(msg)
    sig = obj.signatures[0]
    assert sig.header.json_web_key is not None
    assert sig.protected.nonce == "8HIepUNFZUa-exKTrXVf4g"
    assert obj.payload.startswith(b'{"contact":["mailto:')
    auth = obj.compute_auth_data(obj.payload, sig)
    assert auth.startswith(protected.encode("ascii") + b".")


def test_header_fields_compact():
    msg = "eyJhbGciOiJFUzUxMiJ9.TG9yZW0gaXBzdW0gZG9sb3Igc2l0IGFtZXQ." + ES512_SIGNATURE
    obj = parse_signed(msg)
    sig = obj.signatures[0]
    assert sig.header.algorithm == "ES512"
    assert sig.protected.algorithm == "ES512"
    assert sig.unprotected.algorithm == ""
    assert obj.payload == b"Lorem ipsum dolor sit amet"


def test_header_fields_full():
    msg = (
        '{"payload":"TG9yZW0gaXBzdW0gZG9sb3Igc2l0IGFtZXQ","protected":"eyJhbGciOiJFUzUxMiJ9",'
        '"header":{"custom":"test"},"signature":"' + ES512_SIGNATURE + '"}'
    )
    obj = parse_signed(msg)
    sig = obj.signatures[0]
    assert sig.header.algorithm == "ES512"
    assert sig.protected.algorithm == "ES512"
    assert sig.unprotected.algorithm == ""
    assert sig.unprotected.extra_headers["custom"] == "test"


def test_full_serialize_flattened_reproduces_input():
    msg = (
        '{"payload":"TG9yZW0gaXBzdW0gZG9sb3Igc2l0IGFtZXQ","protected":"eyJhbGciOiJFUzUxMiJ9",'
        '"header":{"custom":"test"},"signature":"' + ES512_SIGNATURE + '"}'
    )
    assert parse_signed(msg).full_serialize() == msg


def test_full_serialize_multiple_signatures_reproduces_input():
    msg = (
        '{"payload":"CUJD","signatures":[{"protected":"e30","header":{"kid":"XYZ"},'
        '"signature":"CUJD"},{"protected":"e30","signature":"CUJD"}]}'
    )
    assert parse_signed(msg).full_serialize() == msg


def test_missing_payload():
    with pytest.raises(JoseError, match="missing payload"):
        parse_signed('{"signature":"c2lnbmF0dXJl"}')


def test_null_header_value():
    msg = """{
       "payload":
        "eyJpc3MiOiJqb2UiLA0KICJleHAiOjEzMDA4MTkzODAsDQogImh0dHA6Ly9leGF
         tcGxlLmNvbS9pc19yb290Ijp0cnVlfQ",
       "protected":"eyJhbGciOiJFUzI1NiIsIm5vbmNlIjpudWxsfQ",
       "header":
        {"kid":"e9bc097a-ce51-4036-9562-d2ade882db0d"},
       "signature":
        "DtEhU3ljbEg8L38VWAfUAqOyKAM6-Xx-F4GawxaepmXFCgfTjDxw5djxLa8IS
         lSApmWQxfKTUJqPP3-Kg6NU1Q"
      }"""
    obj = parse_signed(msg)
    sig = obj.signatures[0]
    assert sig.protected.algorithm == "ES256"
    assert sig.protected.nonce == ""
    assert sig.header.key_id == "e9bc097a-ce51-4036-9562-d2ade882db0d"


def test_detached_compact_serialization():
    msg = "eyJhbGciOiJSUzI1NiJ9.JC4wMg.W5tc_EUhxexcvLYEEOckyyvdb__M5DQIVpg6Nmk1XGM"
    expected = "eyJhbGciOiJSUzI1NiJ9..W5tc_EUhxexcvLYEEOckyyvdb__M5DQIVpg6Nmk1XGM"

    obj = parse_signed(msg)
    serialized = obj.detached_compact_serialize()
    assert serialized == expected

    obj = parse_detached(serialized, b"$.02")
    assert obj.payload == b"$.02"
    assert obj.compact_serialize() == msg


def test_parse_detached_requires_payload():
    with pytest.raises(JoseError, match="nil payload"):
        parse_detached("eyJhbGciOiJSUzI1NiJ9..c2ln", None)


def test_parse_detached_rejects_attached_payload():
    with pytest.raises(JoseError, match="not detached"):
        parse_detached("eyJhbGciOiJSUzI1NiJ9.JC4wMg.c2ln", b"$.02")


def test_compact_serialize_rejects_unprotected_header():
    msg = (
        '{"payload":"TG9yZW0gaXBzdW0gZG9sb3Igc2l0IGFtZXQ","protected":"eyJhbGciOiJFUzUxMiJ9",'
        '"header":{"custom":"test"},"signature":"' + ES512_SIGNATURE + '"}'
    )
    with pytest.raises(NotSupportedError):
        parse_signed(msg).compact_serialize()


def test_compact_serialize_rejects_multiple_signatures():
    msg = (
        '{"payload":"CUJD","signatures":[{"protected":"e30","signature":"CUJD"},'
        '{"protected":"e30","signature":"CUJD"}]}'
    )
    with pytest.raises(NotSupportedError):
        parse_signed(msg).detached_compact_serialize()


def test_compute_auth_data_of_parsed_compact():
    obj = parse_signed("eyJhbGciOiJYWVoifQ.cGF5bG9hZA.c2lnbmF0dXJl")
    auth = obj.compute_auth_data(obj.payload, obj.signatures[0])
    assert auth == b"eyJhbGciOiJYWVoifQ.cGF5bG9hZA"


def test_compute_auth_data_invalid_header():
    jws = JSONWebSignature()
    with pytest.raises(JoseError):
        jws.compute_auth_data(b"\x01", Signature(original_protected=b"{!invalid-json}"))


def test_compute_auth_data_b64_true():
    jws = JSONWebSignature()
    header = b'{"alg":"RSA-OAEP","enc":"A256GCM","b64":true}'
    payload = b"\x01"
    data = jws.compute_auth_data(payload, Signature(original_protected=header))
    encoded_header = base64.urlsafe_b64encode(header).rstrip(b"=")
    encoded_payload = base64.urlsafe_b64encode(payload).rstrip(b"=")
    assert len(data) == len(encoded_header) + len(encoded_payload) + 1
    assert data.endswith(b"." + encoded_payload)


def test_compute_auth_data_b64_false():
    jws = JSONWebSignature()
    header = b'{"alg":"RSA-OAEP","enc":"A256GCM","b64":false}'
    payload = b"\x01"
    data = jws.compute_auth_data(payload, Signature(original_protected=header))
    encoded_header = base64.urlsafe_b64encode(header).rstrip(b"=")
    assert len(data) == len(encoded_header) + len(payload) + 1
    assert data.endswith(b"." + payload)


def test_compute_auth_data_without_protected_header():
    jws = JSONWebSignature()
    assert jws.compute_auth_data(b"payload", Signature()) == b".cGF5bG9hZA"