"""
Persistent, optionally encrypted store of remote configurations.

The ConfigStore ties the pieces together:

    load:  read file -> codec.decrypt -> provider.load
    save:  provider.save -> codec.encrypt -> AtomicWriter.replace

A missing config file is not an error: the store starts empty and the file
is created on the first save. Saves are retried with a random sub-second
delay so that several processes saving at once do not keep colliding.

Usage:
    settings = load_settings()
    store = ConfigStore(settings)
    remotes = store.load()

    remotes.create_remote("remote1").set_string("type", "local")
    store.save()
"""

from __future__ import annotations

import logging
import os
import random
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

from remoteconf.config import codec
from remoteconf.config.errors import (
    ConfigFileNotFoundError,
    ConfigReadError,
    ConfigStoreError,
    ConfigWriteError,
    InvalidPasswordError,
)
from remoteconf.config.keys import KeyChain
from remoteconf.config.settings import KEY_FILE_ENV, PASSWORD_ENV, StoreSettings
from remoteconf.providers import Provider, ProviderRegistry, default_registry
from remoteconf.storage.atomic import AtomicWriter
from remoteconf.storage.models import RemoteConfig

logger = logging.getLogger(__name__)

MAX_SAVE_JITTER_MS = 999


class ConfigStore:
    """
    Loads and saves the remotes config file.

    Attributes:
        settings: Store settings (path, password policy, retries).
        registry: Provider registry used to pick the file format.
        keychain: Source of the encryption key.
        writer: Atomic file writer.
    """

    def __init__(
        self,
        settings: StoreSettings,
        registry: ProviderRegistry | None = None,
        keychain: KeyChain | None = None,
        writer: AtomicWriter | None = None,
        prompt: Callable[[str], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the store. Nothing is read until load().

        Args:
            settings: Store settings.
            registry: Provider registry. Defaults to the built-in formats.
            keychain: Key source. Defaults to one built from settings.
            writer: File writer. Defaults to AtomicWriter().
            prompt: Password prompt used by the default keychain.
            sleep: Function used to wait between save attempts.
        """
        self.settings = settings
        self.registry = registry if registry is not None else default_registry()
        self.keychain = keychain or KeyChain(
            ask_password=settings.ask_password,
            prompt=prompt,
            key_file=settings.key_file,
            max_attempts=settings.password_attempts,
            iterations=settings.kdf_iterations,
            pass_key_to_child=settings.pass_key_to_child,
        )
        self.writer = writer or AtomicWriter()
        self._sleep = sleep
        self._provider: Provider | None = None

    @property
    def config_path(self) -> Path:
        return Path(self.settings.config_path)

    @property
    def provider(self) -> Provider:
        """
        The provider for the config file format.

        Raises:
            ProviderNotFoundError: If no provider handles the file extension.
        """
        if self._provider is None:
            self._provider = self.registry.create_for_path(self.config_path)
        return self._provider

    @property
    def remote_config(self) -> RemoteConfig:
        return self.provider.get_remote_config()

    def get_remote_config(self) -> RemoteConfig:
        return self.remote_config

    @property
    def is_encrypted(self) -> bool:
        """True if the next save will encrypt the config."""
        return self.keychain.has_key

    def load(self) -> RemoteConfig:
        """
        Load the config file.

        Returns:
            The loaded remotes; empty if the file does not exist yet.

        Raises:
            ProviderNotFoundError: No provider for the file extension.
            ConfigReadError: The file exists but cannot be read.
            UnsupportedVersionError, TruncatedDataError, ConfigFormatError,
            AuthenticationFailedError, NoPasswordAvailableError,
            KeyHandoffError: The file is encrypted and cannot be opened.
            ProviderError: The decrypted content cannot be parsed.
        """
        self._provider = self.registry.create_for_path(self.config_path)

        # A key file from the parent process wins over the password
        if self.keychain.has_pending_handoff:
            if self.settings.password:
                logger.debug(f"Ignoring {PASSWORD_ENV}: using key file from parent process")
        elif self.settings.password and not self.keychain.has_key:
            try:
                self.keychain.set_password(self.settings.password)
                logger.debug(f"Using {PASSWORD_ENV} password.")
            except InvalidPasswordError as e:
                logger.error(f"Using {PASSWORD_ENV} returned: {e}")

        try:
            raw = self._read_file()
        except ConfigFileNotFoundError:
            logger.warning(f"Config file {str(self.config_path)!r} not found - using defaults")
            self._publish_handoff_file()
            return self.remote_config

        plaintext = codec.decrypt(raw, self.keychain)
        self._provider.load(plaintext)
        self._publish_handoff_file()
        logger.debug(f"Using config file from {str(self.config_path)!r}")
        return self.remote_config

    def save(self) -> None:
        """
        Save the config file, encrypting it if a key is set.

        Raises:
            ProviderError: The remotes cannot be serialized.
            ConfigWriteError: Every attempt to write the file failed.
        """
        plaintext = self.provider.save()
        attempts = self.settings.low_level_retries + 1
        last_error: ConfigWriteError | None = None

        for attempt in range(1, attempts + 1):
            try:
                content = codec.encrypt(plaintext, self.keychain.key)
                self.writer.replace(self.config_path, content)
                logger.debug(f"Saved config file {str(self.config_path)!r}")
                return
            except ConfigWriteError as e:
                last_error = e
                logger.debug(f"Save attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    self._sleep(random.randint(0, MAX_SAVE_JITTER_MS) / 1000)

        assert last_error is not None
        raise ConfigWriteError(
            f"Failed to save config after {attempts} tries: {last_error.message}",
            self.config_path,
        ) from last_error

    def set_password(self, password: str) -> None:
        """
        Set the config password. The next save writes an encrypted file.

        Raises:
            InvalidPasswordError: If the password is empty.
        """
        self.keychain.set_password(password)
        self._publish_handoff_file()

    def clear_password(self) -> None:
        """Remove the config password. The next save writes plaintext."""
        published = self.keychain.handoff_path
        self.keychain.forget()
        if published is not None and os.environ.get(KEY_FILE_ENV) == str(published):
            del os.environ[KEY_FILE_ENV]

    def dump(self) -> str:
        """Return the plaintext serialization of the current remotes."""
        return str(self.provider)

    def _read_file(self) -> bytes:
        try:
            return self.config_path.read_bytes()
        except FileNotFoundError as e:
            raise ConfigFileNotFoundError("config file not found", self.config_path) from e
        except OSError as e:
            raise ConfigReadError(f"Failed to read config file: {e}", self.config_path) from e

    def _publish_handoff_file(self) -> None:
        """Point child processes at the handoff file, if one was written."""
        if self.keychain.handoff_path is not None:
            os.environ[KEY_FILE_ENV] = str(self.keychain.handoff_path)


def load_or_exit(store: ConfigStore) -> RemoteConfig:
    """Load the store, logging the cause and exiting with status 1 on failure."""
    try:
        return store.load()
    except ConfigStoreError as e:
        _fatal(f"Failed to load config file {str(store.config_path)!r}: {e}")


def save_or_exit(store: ConfigStore) -> None:
    """Save the store, logging the cause and exiting with status 1 on failure."""
    try:
        store.save()
    except ConfigStoreError as e:
        _fatal(str(e))


def _fatal(message: str) -> NoReturn:
    logger.critical(message)
    sys.exit(1)
