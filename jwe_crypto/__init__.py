"""
jwe-crypto - JWE compact serialization with RSA-OAEP-256 and AES.

Usage:
    from jwe_crypto import JWECrypto

    codec = JWECrypto.from_files("encryption-cert.pem", "private-key.pem")

    # Encrypt a JSON payload
    encrypted = codec.encrypt_data(b'{"account": "5555"}')
    # {"encryptedData": "eyJhbGciOi..."}

    # Decrypt it again
    payload = codec.decrypt_data(encrypted["encryptedData"])
"""

import logging

from jwe_crypto.core.exceptions import (
    AuthenticationFailedError,
    CipherError,
    ConfigurationError,
    JWEError,
    KeyLoadError,
    KeyUnavailableError,
    KeyUnwrapError,
    MalformedMessageError,
    UnsupportedAlgorithmError,
)
from jwe_crypto.core.jwe_engine import JWECrypto, JWEEncryption

__version__ = "0.1.0"
__all__ = [
    "JWECrypto",
    "JWEEncryption",
    "JWEError",
    "ConfigurationError",
    "KeyUnavailableError",
    "KeyLoadError",
    "MalformedMessageError",
    "KeyUnwrapError",
    "UnsupportedAlgorithmError",
    "AuthenticationFailedError",
    "CipherError",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
