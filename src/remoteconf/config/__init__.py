"""
Config persistence for remoteconf.

This package loads and saves the remotes config file, with optional
password-based encryption of the whole file.
"""

from remoteconf.config.errors import (
    AuthenticationFailedError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigReadError,
    ConfigStoreError,
    ConfigurationError,
    ConfigWriteError,
    InvalidPasswordError,
    KeyHandoffError,
    NoPasswordAvailableError,
    ProviderError,
    ProviderNotFoundError,
    TruncatedDataError,
    UnsupportedVersionError,
)
from remoteconf.config.keys import KeyChain, derive_key
from remoteconf.config.settings import StoreSettings, get_config_path, load_settings
from remoteconf.config.store import ConfigStore, load_or_exit, save_or_exit

__all__ = [
    # Store
    "ConfigStore",
    "load_or_exit",
    "save_or_exit",
    # Settings
    "StoreSettings",
    "get_config_path",
    "load_settings",
    # Keys
    "KeyChain",
    "derive_key",
    # Errors
    "ConfigStoreError",
    "ConfigFileNotFoundError",
    "ConfigReadError",
    "UnsupportedVersionError",
    "TruncatedDataError",
    "ConfigFormatError",
    "AuthenticationFailedError",
    "NoPasswordAvailableError",
    "InvalidPasswordError",
    "KeyHandoffError",
    "ConfigWriteError",
    "ProviderError",
    "ProviderNotFoundError",
    "ConfigurationError",
]
