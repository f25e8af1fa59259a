"""JWE Compact Serialization (RFC 7516, section 7.1).

A compact message is five base64url segments joined by '.':

    header . encrypted_key . iv . ciphertext . tag

Segments are written without '=' padding; on read, padding is optional.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass

from jwe_crypto.core.exceptions import MalformedMessageError

SEGMENT_COUNT = 5

_B64URL_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


@dataclass(frozen=True)
class JWEParts:
    """Decoded segments of a compact JWE."""

    header_b64: str  # Protected header exactly as it appeared on the wire
    header: bytes
    encrypted_key: bytes
    iv: bytes
    ciphertext: bytes
    tag: bytes


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Base64url decode with padding restoration.

    Raises:
        MalformedMessageError: If the value is not valid base64url
    """
    data = data.rstrip("=")
    if not _B64URL_ALPHABET.fullmatch(data):
        raise MalformedMessageError("Invalid base64url segment")
    padding = 4 - len(data) % 4
    if padding != 4:
        data += "=" * padding
    try:
        return base64.urlsafe_b64decode(data)
    except (binascii.Error, ValueError):
        raise MalformedMessageError("Invalid base64url segment") from None


def serialize(header_b64: str, encrypted_key: bytes, iv: bytes, ciphertext: bytes, tag: bytes) -> str:
    """Join an already encoded header and the raw segments into a compact JWE."""
    return ".".join(
        [
            header_b64,
            b64url_encode(encrypted_key),
            b64url_encode(iv),
            b64url_encode(ciphertext),
            b64url_encode(tag),
        ]
    )


def parse(compact: str) -> JWEParts:
    """Split and decode a compact JWE.

    Raises:
        MalformedMessageError: If there are not exactly five segments or
            a segment is not valid base64url
    """
    if not isinstance(compact, str):
        raise MalformedMessageError("Compact JWE must be a string")

    parts = compact.split(".")
    if len(parts) != SEGMENT_COUNT:
        raise MalformedMessageError(
            f"Invalid JWE format: expected {SEGMENT_COUNT} segments, got {len(parts)}"
        )

    header_b64, encrypted_key_b64, iv_b64, ciphertext_b64, tag_b64 = parts

    return JWEParts(
        header_b64=header_b64,
        header=b64url_decode(header_b64),
        encrypted_key=b64url_decode(encrypted_key_b64),
        iv=b64url_decode(iv_b64),
        ciphertext=b64url_decode(ciphertext_b64),
        tag=b64url_decode(tag_b64),
    )


def decode_header(header: bytes) -> dict:
    """Parse a decoded protected header."""
    try:
        decoded = json.loads(header)
    except (UnicodeDecodeError, ValueError):
        raise MalformedMessageError("Protected header is not valid JSON") from None
    if not isinstance(decoded, dict):
        raise MalformedMessageError("Protected header must be a JSON object")
    return decoded


def read_header(compact: str) -> dict:
    """Return the protected header of a compact JWE without decrypting it."""
    return decode_header(parse(compact).header)
