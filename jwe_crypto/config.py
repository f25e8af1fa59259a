"""JWE codec configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Codec settings loaded from JWE_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="JWE_", env_file=".env", case_sensitive=False)

    # Encryption certificate (PEM or DER)
    encryption_certificate: Path | None = None

    # Decryption key: either a private key file or a PKCS#12 keystore
    private_key: Path | None = None
    private_key_password: SecretStr | None = None
    key_store: Path | None = None
    key_store_password: SecretStr | None = None

    # Output
    encrypted_value_field_name: str = "encryptedData"

    @model_validator(mode="after")
    def _single_private_key_source(self) -> "Settings":
        if self.private_key is not None and self.key_store is not None:
            raise ValueError("private_key and key_store are mutually exclusive")
        return self

    def private_key_password_value(self) -> str | None:
        if self.private_key_password is None:
            return None
        return self.private_key_password.get_secret_value()

    def key_store_password_value(self) -> str | None:
        if self.key_store_password is None:
            return None
        return self.key_store_password.get_secret_value()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
