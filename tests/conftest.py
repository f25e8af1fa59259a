"""Shared fixtures: throwaway RSA keys and self-signed certificates."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from jwe_crypto import JWECrypto


def make_certificate(private_key, common_name: str = "jwe-test") -> x509.Certificate:
    """Self-sign a certificate for the given key."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate(rsa_key):
    return make_certificate(rsa_key)


@pytest.fixture(scope="session")
def other_certificate(other_rsa_key):
    return make_certificate(other_rsa_key, common_name="jwe-other")


@pytest.fixture
def codec(certificate, rsa_key):
    """Codec with matching certificate and private key."""
    return JWECrypto(certificate, rsa_key)


@pytest.fixture
def certificate_pem(certificate):
    return certificate.public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def private_key_pem(rsa_key):
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
