"""JSON Web Keys, key sets, and JWE and JWS objects: parsing and serialization."""

__version__ = "0.1.0"

__all__ = ["encoding", "keys", "jwk", "header", "jwe", "jws"]