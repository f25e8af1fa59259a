"""JWE exception hierarchy."""


class JWEError(Exception):
    """Base JWE exception."""

    pass


class ConfigurationError(JWEError):
    """Key material or codec configuration is invalid."""

    pass


class KeyUnavailableError(ConfigurationError):
    """A private key is required but none was configured."""

    pass


class KeyLoadError(ConfigurationError):
    """Certificate, private key or keystore could not be loaded."""

    pass


class MalformedMessageError(JWEError):
    """Compact serialization is not well formed."""

    pass


class KeyUnwrapError(JWEError):
    """Content encryption key could not be unwrapped."""

    pass


class UnsupportedAlgorithmError(JWEError):
    """Content encryption method not supported."""

    def __init__(self, enc):
        self.enc = enc
        super().__init__(f"Encryption method '{enc}' not supported.")


class AuthenticationFailedError(JWEError):
    """Authentication tag verification failed."""

    pass


class CipherError(JWEError):
    """Symmetric cipher operation failed."""

    pass
