"""Key Loading.

Parses the key material the JWE codec works with:
- Encryption certificate (PEM or DER X.509), source of the RSA public key
- Private key (PEM or DER, PKCS#1 or PKCS#8, optionally password protected)
- PKCS#12 keystore holding the private key

Security considerations:
- The public key used for encryption always comes from the certificate
- Only RSA keys are accepted
- Passwords and key bytes are never logged
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from jwe_crypto.core.exceptions import KeyLoadError

logger = logging.getLogger(__name__)

_PEM_MARKER = b"-----BEGIN"


@dataclass(frozen=True)
class KeyMaterial:
    """Public key from the encryption certificate plus the optional private key."""

    public_key: rsa.RSAPublicKey
    private_key: rsa.RSAPrivateKey | None = None

    @classmethod
    def build(
        cls,
        certificate: x509.Certificate,
        private_key: rsa.RSAPrivateKey | None = None,
    ) -> "KeyMaterial":
        """Create key material from a parsed certificate and private key."""
        public_key = certificate.public_key()
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise KeyLoadError(f"Certificate must carry an RSA public key, got {type(public_key).__name__}")
        if private_key is not None and not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyLoadError(f"Private key must be an RSA key, got {type(private_key).__name__}")
        return cls(public_key=public_key, private_key=private_key)


def _password_bytes(password: str | bytes | None) -> bytes | None:
    if password is None or isinstance(password, bytes):
        return password
    return password.encode()


def _is_pem(data: bytes) -> bool:
    return _PEM_MARKER in data


def read_file(path: str | Path) -> bytes:
    """Read raw key material from disk."""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise KeyLoadError(f"Unable to read key material from {path}: {e.strerror}")


def load_certificate(data: bytes | str) -> x509.Certificate:
    """Load a PEM or DER encoded X.509 certificate.

    Args:
        data: Certificate bytes (PEM text may be passed as str)

    Returns:
        Parsed certificate with an RSA public key

    Raises:
        KeyLoadError: If the certificate cannot be parsed or is not RSA
    """
    if isinstance(data, str):
        data = data.encode()

    try:
        if _is_pem(data):
            certificate = x509.load_pem_x509_certificate(data)
        else:
            certificate = x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise KeyLoadError(f"Failed to parse certificate: {e}")

    if not isinstance(certificate.public_key(), rsa.RSAPublicKey):
        raise KeyLoadError("Encryption certificate must carry an RSA public key")

    logger.debug("Loaded encryption certificate %s", certificate.subject.rfc4514_string())
    return certificate


def load_private_key(data: bytes | str, password: str | bytes | None = None) -> rsa.RSAPrivateKey:
    """Load a PEM or DER encoded RSA private key.

    Args:
        data: Private key bytes
        password: Password for an encrypted key

    Returns:
        Parsed RSA private key

    Raises:
        KeyLoadError: If the key cannot be parsed or is not RSA
    """
    if isinstance(data, str):
        data = data.encode()
    pwd = _password_bytes(password)

    try:
        if _is_pem(data):
            key = serialization.load_pem_private_key(data, password=pwd)
        else:
            key = serialization.load_der_private_key(data, password=pwd)
    except (ValueError, TypeError) as e:
        raise KeyLoadError(f"Failed to parse private key: {e}")

    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyLoadError(f"Private key must be an RSA key, got {type(key).__name__}")

    return key


def load_keystore(data: bytes, password: str | bytes | None) -> rsa.RSAPrivateKey:
    """Load the RSA private key held in a PKCS#12 keystore.

    Args:
        data: PKCS#12 container bytes
        password: Keystore password

    Returns:
        The keystore's RSA private key

    Raises:
        KeyLoadError: If the keystore cannot be opened or holds no RSA key
    """
    try:
        key, _, _ = pkcs12.load_key_and_certificates(data, _password_bytes(password))
    except (ValueError, TypeError):
        # Wrong password and corrupt container look the same to the caller
        raise KeyLoadError("Failed to open keystore (wrong password or corrupt container)")

    if key is None:
        raise KeyLoadError("Keystore does not contain a private key")
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyLoadError(f"Keystore private key must be an RSA key, got {type(key).__name__}")

    return key


def compute_fingerprint(public_key: rsa.RSAPublicKey) -> str:
    """Hex SHA-256 of the DER SubjectPublicKeyInfo of a public key."""
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(der).hexdigest()
