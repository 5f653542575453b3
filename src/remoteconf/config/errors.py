"""
Exceptions raised by the config store.

Every error derives from ConfigStoreError so the CLI can report any failure
of the persistence engine with a single handler. Errors that wrap an
underlying OS or library failure keep it as ``__cause__``.
"""

from __future__ import annotations

from pathlib import Path


class ConfigStoreError(Exception):
    """Base exception for config store errors."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.message = message
        self.path = Path(path) if path is not None else None
        super().__init__(f"{message} ({self.path})" if self.path else message)


class ConfigFileNotFoundError(ConfigStoreError):
    """Raised when the config file does not exist yet."""

    pass


class ConfigReadError(ConfigStoreError):
    """Raised when the config file exists but cannot be read."""

    pass


class UnsupportedVersionError(ConfigStoreError):
    """
    Raised when the file carries an encryption sentinel we do not know.

    Newer versions of the container format are never guessed at. The operator
    has to upgrade to a release that understands them.
    """

    pass


class TruncatedDataError(ConfigStoreError):
    """Raised when encrypted data is shorter than nonce plus tag."""

    pass


class ConfigFormatError(ConfigStoreError):
    """Raised when the encrypted container is malformed (bad base64)."""

    pass


class AuthenticationFailedError(ConfigStoreError):
    """Raised when the ciphertext cannot be opened with the available key."""

    pass


class NoPasswordAvailableError(ConfigStoreError):
    """Raised when decryption is needed but no key source can supply a key."""

    pass


class InvalidPasswordError(ConfigStoreError):
    """Raised when a supplied password is unusable (e.g. empty)."""

    pass


class KeyHandoffError(ConfigStoreError):
    """Raised when the obscured key handoff file cannot be read or removed."""

    pass


class ConfigWriteError(ConfigStoreError):
    """Raised when the config file cannot be written or committed."""

    pass


class ProviderError(ConfigStoreError):
    """Raised when a provider cannot parse or serialize config data."""

    pass


class ProviderNotFoundError(ConfigStoreError):
    """Raised when no registered provider handles the config file extension."""

    pass


class ConfigurationError(ConfigStoreError):
    """Raised when store settings are invalid."""

    pass
