"""RSA-OAEP wrapping of locally generated key material.

KMS unwraps imported material with the algorithm chosen in
GetParametersForImport. We always ask for RSAES_OAEP_SHA_1 with an
RSA_2048 wrapping key, so the padding below must be OAEP with SHA-1 for
both the digest and MGF1, and no label.
"""
from __future__ import annotations

import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import KeyDecodeError, WrapError

logger = logging.getLogger(__name__)

WRAPPING_ALGORITHM = "RSAES_OAEP_SHA_1"
WRAPPING_KEY_SPEC = "RSA_2048"
EXPECTED_KEY_BITS = 2048
SYMMETRIC_KEY_BYTES = 256 // 8
SHA1_DIGEST_BYTES = 20


def _oaep_sha1() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA1()),
        algorithm=hashes.SHA1(),
        label=None,
    )


def max_plaintext_length(key_size_bits: int) -> int:
    """Largest message OAEP-SHA1 can carry under a modulus of this size."""
    return (key_size_bits + 7) // 8 - 2 * SHA1_DIGEST_BYTES - 2


def decode_public_key(encoded: bytes) -> rsa.RSAPublicKey:
    if not isinstance(encoded, (bytes, bytearray, memoryview)):
        raise KeyDecodeError(f"expected encoded key bytes, got {type(encoded).__name__}")
    data = bytes(encoded)
    try:
        if data.lstrip().startswith(b"-----BEGIN"):
            key = serialization.load_pem_public_key(data)
        else:
            key = serialization.load_der_public_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyDecodeError(f"malformed SubjectPublicKeyInfo: {exc}") from exc

    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyDecodeError(f"wrapping key must be RSA, got {type(key).__name__}")

    logger.debug("Decoded %d-bit RSA wrapping key", key.key_size)
    if key.key_size != EXPECTED_KEY_BITS:
        logger.warning(
            "Wrapping key is %d bits, expected %d for %s",
            key.key_size,
            EXPECTED_KEY_BITS,
            WRAPPING_KEY_SPEC,
        )
    return key


def wrap_key(public_key: rsa.RSAPublicKey, secret: bytes) -> bytes:
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise WrapError(f"wrapping key must be RSA, got {type(public_key).__name__}")
    if not secret:
        raise WrapError("refusing to wrap empty key material")

    limit = max_plaintext_length(public_key.key_size)
    if len(secret) > limit:
        raise WrapError(
            f"key material is {len(secret)} bytes, "
            f"OAEP-SHA1 under a {public_key.key_size}-bit key allows at most {limit}"
        )

    try:
        return public_key.encrypt(bytes(secret), _oaep_sha1())
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise WrapError(f"RSA-OAEP encryption failed: {exc}") from exc


def unwrap_key(private_key: rsa.RSAPrivateKey, wrapped: bytes) -> bytes:
    """Inverse of :func:`wrap_key` for whoever holds the private half."""
    try:
        return private_key.decrypt(wrapped, _oaep_sha1())
    except (ValueError, TypeError) as exc:
        raise WrapError(f"RSA-OAEP decryption failed: {exc}") from exc


__all__ = [
    "WRAPPING_ALGORITHM",
    "WRAPPING_KEY_SPEC",
    "EXPECTED_KEY_BITS",
    "SYMMETRIC_KEY_BYTES",
    "max_plaintext_length",
    "decode_public_key",
    "wrap_key",
    "unwrap_key",
]
