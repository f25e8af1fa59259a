"""JWE (JSON Web Encryption) Engine.

Implements RFC 7516 compact serialization with RFC 7518 algorithms.

Key Management:
- RSA-OAEP-256 (RSA-OAEP with SHA-256 and MGF1-SHA-256)

Content Encryption:
- A256GCM (AES-256-GCM) - encrypt and decrypt
- A128CBC-HS256 (AES-128-CBC) - decrypt only, legacy

The A128CBC-HS256 path keys AES-128-CBC with the trailing 16 bytes of the
unwrapped 32-byte CEK and does not verify the HMAC tag. Messages produced by
older senders depend on exactly this behaviour.
"""

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from cryptography import x509
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from jwe_crypto.config import Settings, get_settings
from jwe_crypto.core import compact
from jwe_crypto.core.exceptions import (
    AuthenticationFailedError,
    CipherError,
    ConfigurationError,
    KeyUnavailableError,
    KeyUnwrapError,
    MalformedMessageError,
    UnsupportedAlgorithmError,
)
from jwe_crypto.core.key_loader import (
    KeyMaterial,
    compute_fingerprint,
    load_certificate,
    load_keystore,
    load_private_key,
    read_file,
)

logger = logging.getLogger(__name__)

DEFAULT_FIELD_NAME = "encryptedData"
CONTENT_TYPE = "application/json"

CEK_SIZE = 32
IV_SIZE = 12
TAG_SIZE = 16


class JWEAlgorithm(str, Enum):
    """Supported JWE key management algorithms."""

    RSA_OAEP_256 = "RSA-OAEP-256"


class JWEEncryption(str, Enum):
    """Supported JWE content encryption algorithms."""

    A256GCM = "A256GCM"  # AES-256-GCM
    A128CBC_HS256 = "A128CBC-HS256"  # AES-128-CBC, legacy decrypt only


@dataclass
class JWEResult:
    """Result of JWE creation."""

    compact: str  # Compact serialization
    header: dict
    encrypted_key: bytes
    iv: bytes
    ciphertext: bytes
    tag: bytes


def resolve_encryption(enc: Any) -> JWEEncryption:
    """Map a header 'enc' value to a supported content encryption method.

    Raises:
        UnsupportedAlgorithmError: For any value outside JWEEncryption
    """
    try:
        return JWEEncryption(enc)
    except ValueError:
        raise UnsupportedAlgorithmError(enc) from None


def derive_128_from_256(cek: bytes) -> bytes:
    """Take the trailing 16 bytes of a 32-byte CEK as the AES-128-CBC key.

    The leading half is discarded, as legacy A128CBC-HS256 senders expect.
    """
    if len(cek) != CEK_SIZE:
        raise CipherError(f"A128CBC-HS256 requires a {CEK_SIZE}-byte CEK, got {len(cek)}")
    return cek[16:]


def build_header(algorithm: JWEAlgorithm, encryption: JWEEncryption, kid: str) -> dict:
    """Build the JWE protected header."""
    return {
        "alg": algorithm.value,
        "enc": encryption.value,
        "kid": kid,
        "cty": CONTENT_TYPE,
    }


def encode_header(header: dict) -> str:
    """Serialize a header to compact JSON and base64url encode it."""
    return compact.b64url_encode(json.dumps(header, separators=(",", ":")).encode())


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def wrap_key(public_key: rsa.RSAPublicKey, cek: bytes) -> bytes:
    """RSA-OAEP-256 encrypt a content encryption key."""
    try:
        return public_key.encrypt(cek, _oaep())
    except ValueError:
        raise ConfigurationError(
            f"RSA key ({public_key.key_size} bits) is too small to wrap a {len(cek)}-byte key"
        ) from None


def unwrap_key(private_key: rsa.RSAPrivateKey, encrypted_key: bytes) -> bytes:
    """RSA-OAEP-256 decrypt a content encryption key.

    Every failure produces the same KeyUnwrapError so nothing about the
    padding check reaches the caller.
    """
    try:
        return private_key.decrypt(encrypted_key, _oaep())
    except ValueError:
        raise KeyUnwrapError("Unable to unwrap content encryption key") from None


def _encrypt_gcm(key: bytes, iv: bytes, plaintext: bytes, aad: bytes) -> tuple[bytes, bytes]:
    ciphertext_and_tag = AESGCM(key).encrypt(iv, plaintext, aad)
    # Tag is the last 16 bytes
    return ciphertext_and_tag[:-TAG_SIZE], ciphertext_and_tag[-TAG_SIZE:]


def _decrypt_gcm(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes, aad: bytes) -> bytes:
    if len(key) != CEK_SIZE:
        raise CipherError(f"A256GCM requires a {CEK_SIZE}-byte CEK, got {len(key)}")
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, aad)
    except InvalidTag:
        raise AuthenticationFailedError("Decryption failed: authentication tag mismatch") from None
    except ValueError as e:
        raise CipherError(f"AES-GCM decryption failed: {e}") from None


def _decrypt_cbc(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = sym_padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise CipherError(f"AES-CBC decryption failed: {e}") from None


class JWECrypto:
    """JWE codec bound to one encryption certificate and private key.

    Instances hold only immutable state and can be shared between threads.
    """

    def __init__(
        self,
        certificate: x509.Certificate | bytes | str,
        private_key: rsa.RSAPrivateKey | bytes | str | None = None,
        *,
        keystore: bytes | None = None,
        keystore_password: str | bytes | None = None,
        encrypted_value_field_name: str = DEFAULT_FIELD_NAME,
        random_bytes: Callable[[int], bytes] = os.urandom,
    ):
        """Create a codec.

        Args:
            certificate: Encryption certificate, parsed or PEM/DER bytes
            private_key: RSA private key, parsed or PEM/DER bytes
            keystore: PKCS#12 bytes holding the private key
            keystore_password: Password for the keystore
            encrypted_value_field_name: Key of the encrypt_data() result
            random_bytes: Secure random source for CEKs and IVs

        Raises:
            ConfigurationError: If the key material is unusable or both
                a private key and a keystore are supplied
        """
        if private_key is not None and keystore is not None:
            raise ConfigurationError("Provide either a private key or a keystore, not both")
        if not encrypted_value_field_name:
            raise ConfigurationError("encrypted_value_field_name must not be empty")

        if not isinstance(certificate, x509.Certificate):
            certificate = load_certificate(certificate)

        if keystore is not None:
            private_key = load_keystore(keystore, keystore_password)
            key_source = "keystore"
        elif isinstance(private_key, (bytes, str)):
            private_key = load_private_key(private_key)
            key_source = "private key"
        elif private_key is not None:
            key_source = "private key"
        else:
            key_source = "none (encrypt only)"

        self._keys = KeyMaterial.build(certificate, private_key)
        self._fingerprint = compute_fingerprint(self._keys.public_key)
        self._field_name = encrypted_value_field_name
        self._random_bytes = random_bytes

        logger.debug("JWE codec initialized (kid=%s, decryption key: %s)", self._fingerprint, key_source)

    @classmethod
    def from_files(
        cls,
        certificate_path: str | Path,
        private_key_path: str | Path | None = None,
        *,
        private_key_password: str | None = None,
        key_store_path: str | Path | None = None,
        key_store_password: str | None = None,
        encrypted_value_field_name: str = DEFAULT_FIELD_NAME,
    ) -> "JWECrypto":
        """Create a codec from key material on disk.

        Raises:
            ConfigurationError: If a file cannot be read or parsed, or both
                a private key and a keystore are given
        """
        if private_key_path and key_store_path:
            raise ConfigurationError("Provide either a private key or a keystore, not both")

        certificate = load_certificate(read_file(certificate_path))
        private_key = None
        keystore = None
        if private_key_path:
            private_key = load_private_key(read_file(private_key_path), private_key_password)
        elif key_store_path:
            keystore = read_file(key_store_path)

        return cls(
            certificate,
            private_key,
            keystore=keystore,
            keystore_password=key_store_password,
            encrypted_value_field_name=encrypted_value_field_name,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "JWECrypto":
        """Create a codec from application settings (JWE_* environment)."""
        settings = settings or get_settings()
        if settings.encryption_certificate is None:
            raise ConfigurationError("JWE_ENCRYPTION_CERTIFICATE is not configured")

        return cls.from_files(
            settings.encryption_certificate,
            settings.private_key,
            private_key_password=settings.private_key_password_value(),
            key_store_path=settings.key_store,
            key_store_password=settings.key_store_password_value(),
            encrypted_value_field_name=settings.encrypted_value_field_name,
        )

    @property
    def fingerprint(self) -> str:
        """Hex SHA-256 of the certificate public key, used as 'kid'."""
        return self._fingerprint

    @property
    def encrypted_value_field_name(self) -> str:
        return self._field_name

    # ==================== Encryption ====================

    def create_jwe(self, plaintext: bytes | str) -> JWEResult:
        """Encrypt a payload as RSA-OAEP-256 / A256GCM compact JWE.

        Args:
            plaintext: Payload, usually a JSON document (str is UTF-8 encoded)

        Returns:
            JWEResult with compact serialization
        """
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")

        # Fresh CEK and IV on every call
        cek = self._random_bytes(CEK_SIZE)
        iv = self._random_bytes(IV_SIZE)
        if len(cek) != CEK_SIZE or len(iv) != IV_SIZE:
            raise ConfigurationError("Random source returned the wrong number of bytes")

        encrypted_key = wrap_key(self._keys.public_key, cek)

        header = build_header(JWEAlgorithm.RSA_OAEP_256, JWEEncryption.A256GCM, self._fingerprint)
        header_b64 = encode_header(header)

        # AAD is the encoded header, not the JSON
        ciphertext, tag = _encrypt_gcm(cek, iv, plaintext, header_b64.encode("ascii"))

        return JWEResult(
            compact=compact.serialize(header_b64, encrypted_key, iv, ciphertext, tag),
            header=header,
            encrypted_key=encrypted_key,
            iv=iv,
            ciphertext=ciphertext,
            tag=tag,
        )

    def encrypt_data(self, data: bytes | str) -> dict:
        """Encrypt a payload.

        Returns:
            Mapping of the configured field name to the compact JWE
        """
        return {self._field_name: self.create_jwe(data).compact}

    # ==================== Decryption ====================

    def decrypt_data(self, encrypted_data: str) -> bytes:
        """Decrypt a compact JWE.

        Args:
            encrypted_data: Compact serialization

        Returns:
            Decrypted payload bytes (not parsed)

        Raises:
            KeyUnavailableError: If no private key is configured
            MalformedMessageError: If the message cannot be decoded
            KeyUnwrapError: If the CEK cannot be unwrapped
            UnsupportedAlgorithmError: If 'enc' is not supported
            AuthenticationFailedError: If the GCM tag does not verify
            CipherError: If the content cannot be decrypted
        """
        private_key = self._keys.private_key
        if private_key is None:
            raise KeyUnavailableError("Decryption requires a private key or keystore")

        parts = compact.parse(encrypted_data)
        cek = unwrap_key(private_key, parts.encrypted_key)

        header = compact.decode_header(parts.header)
        enc = header.get("enc")
        if enc is None:
            raise MalformedMessageError("Missing 'enc' header")

        try:
            encryption = resolve_encryption(enc)
        except UnsupportedAlgorithmError:
            logger.warning("Rejected JWE with unsupported encryption method %r", enc)
            raise

        logger.debug("Decrypting JWE (enc=%s, kid=%s)", encryption.value, header.get("kid"))

        if encryption == JWEEncryption.A256GCM:
            # AAD is the header segment exactly as received
            aad = parts.header_b64.encode("ascii")
            try:
                return _decrypt_gcm(cek, parts.iv, parts.ciphertext, parts.tag, aad)
            except AuthenticationFailedError:
                logger.warning("JWE authentication failed (kid=%s)", header.get("kid"))
                raise

        elif encryption == JWEEncryption.A128CBC_HS256:
            return _decrypt_cbc(derive_128_from_256(cek), parts.iv, parts.ciphertext)

        else:
            raise UnsupportedAlgorithmError(enc)
