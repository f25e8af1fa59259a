"""JWE protocol core."""

from jwe_crypto.core.jwe_engine import JWECrypto, JWEEncryption, JWEResult
from jwe_crypto.core.key_loader import KeyMaterial

__all__ = ["JWECrypto", "JWEEncryption", "JWEResult", "KeyMaterial"]
