"""
Encryption key acquisition for the config store.

The config key is either absent (the config is stored in plaintext) or 32
bytes derived from the configuration password. A KeyChain answers the
question "which key do I try next?" each time the codec needs one:

    1. a key already cached in memory this run,
    2. an obscured key handed over by a parent process through a one-shot
       temp file (read once, deleted immediately),
    3. an interactive password prompt, if prompting is allowed.

Failed decryptions are reported back with reject(), which discards the key
and counts the failure. Prompting stops after max_attempts failures.

Security Design:
    - The key is held in process memory only, never written in the clear
    - PBKDF2-HMAC-SHA256 makes each password guess expensive
    - The container format has no salt field, so a fixed application salt
      is used; the nonce still makes every saved file unique
    - The handoff file holds the key obscured, and is removed after one
      read attempt whether or not it succeeds
"""

from __future__ import annotations

import getpass
import logging
import os
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from remoteconf.config.errors import (
    InvalidPasswordError,
    KeyHandoffError,
    NoPasswordAvailableError,
)
from remoteconf.config.obscure import obscure_bytes, reveal_bytes

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
PBKDF2_ITERATIONS = 600_000
KDF_SALT = b"[rclone-config]"
DEFAULT_PASSWORD_ATTEMPTS = 3
PASSWORD_PROMPT = "Enter configuration password:"


def derive_key(password: str, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Derive the 32-byte config key from a password.

    Surrounding whitespace is ignored so a password typed with a stray
    space or read from a file with a trailing newline still works.

    Raises:
        InvalidPasswordError: If the password is empty after stripping.
    """
    password = password.strip()
    if not password:
        raise InvalidPasswordError("no characters in password")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=KDF_SALT,
        iterations=iterations,
    )
    return kdf.derive(password.encode())


def _prompt_password(prompt: str) -> str:
    return getpass.getpass(prompt + " ", stream=sys.stderr)


class KeyChain:
    """
    Supplies the config encryption key, one decryption attempt at a time.

    Usage:
        keychain = KeyChain(ask_password=False)
        keychain.set_password("correct horse battery staple")
        key = keychain.acquire()

    Attributes:
        ask_password: Whether an interactive prompt may be used.
        max_attempts: Failed decryptions tolerated before giving up.
        failures: Failed decryptions so far.
        handoff_path: Handoff file written for a child process, if any.
    """

    def __init__(
        self,
        ask_password: bool = True,
        prompt: Callable[[str], str] | None = None,
        key_file: Path | str | None = None,
        max_attempts: int = DEFAULT_PASSWORD_ATTEMPTS,
        iterations: int = PBKDF2_ITERATIONS,
        pass_key_to_child: bool = False,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.ask_password = ask_password
        self.max_attempts = max_attempts
        self.iterations = iterations
        self.pass_key_to_child = pass_key_to_child
        self.failures = 0
        self.handoff_path: Path | None = None
        self._prompt = prompt or _prompt_password
        self._key_file = Path(key_file) if key_file else None
        self._key: bytes | None = None

    @property
    def key(self) -> bytes | None:
        """The cached key, or None when the config is stored in plaintext."""
        return self._key

    @property
    def has_key(self) -> bool:
        return self._key is not None

    @property
    def has_pending_handoff(self) -> bool:
        """True while a key file from a parent process is waiting to be read."""
        return self._key_file is not None

    @property
    def can_retry(self) -> bool:
        """True while another key may still be obtained after a failure."""
        return self.ask_password and self.failures < self.max_attempts

    def set_key(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Config key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._key = bytes(key)

    def set_password(self, password: str) -> None:
        """
        Derive the key from password and cache it.

        Raises:
            InvalidPasswordError: If the password is empty.
        """
        self._key = derive_key(password, self.iterations)
        if self.pass_key_to_child:
            self.export_handoff_file()

    def forget(self) -> None:
        """Drop the cached key. The next save writes plaintext."""
        self._key = None
        self.discard_handoff_file()

    def reject(self) -> None:
        """Discard the current key after it failed to decrypt the config."""
        self._key = None
        self.failures += 1
        self.discard_handoff_file()

    def acquire(self) -> bytes:
        """
        Return the next key to try.

        Raises:
            KeyHandoffError: If the handoff file exists but cannot be read
                or removed.
            NoPasswordAvailableError: If no key is cached, no handoff file is
                pending and prompting is not allowed.
        """
        if self._key is not None:
            return self._key

        if self._key_file is not None:
            key_file, self._key_file = self._key_file, None
            self._key = self._read_handoff_file(key_file)
            logger.debug("Using handed over key file for config key")
            return self._key

        if not self.ask_password:
            raise NoPasswordAvailableError(
                "unable to decrypt configuration and not allowed to ask for "
                "password - set RCLONE_CONFIG_PASS to your configuration password"
            )

        for _ in range(self.max_attempts):
            password = self._prompt(PASSWORD_PROMPT)
            try:
                self.set_password(password)
            except InvalidPasswordError as e:
                logger.error(f"Invalid password: {e.message}")
                continue
            return self._key  # type: ignore[return-value]
        raise NoPasswordAvailableError("no usable configuration password entered")

    def export_handoff_file(self) -> Path:
        """
        Write the obscured key to a private temp file for a child process.

        The child reads the path from the key file environment variable and
        deletes the file after reading it. A file written earlier by this
        keychain is removed first, so at most one exists at a time.

        Raises:
            ValueError: If no key is set.
            KeyHandoffError: If the file cannot be written.
        """
        if self._key is None:
            raise ValueError("No config key to hand over")
        self.discard_handoff_file()
        try:
            fd, name = tempfile.mkstemp(prefix="remoteconf-key-")
            with os.fdopen(fd, "w") as f:
                f.write(obscure_bytes(self._key))
        except OSError as e:
            raise KeyHandoffError(f"Failed to write config key file: {e}") from e
        self.handoff_path = Path(name)
        logger.debug(f"Wrote obscured config key to {self.handoff_path}")
        return self.handoff_path

    def discard_handoff_file(self) -> None:
        """Remove the handoff file written by export_handoff_file(), if any."""
        if self.handoff_path is None:
            return
        path, self.handoff_path = self.handoff_path, None
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove config key file {path}: {e}")

    @staticmethod
    def _read_handoff_file(path: Path) -> bytes:
        """Read and delete the handoff file. The file never survives a read attempt."""
        logger.debug(f"Attempting to obtain config key from temp file {path}")
        read_error: Exception | None = None
        obscured = ""
        try:
            obscured = path.read_text()
        except OSError as e:
            read_error = e

        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise KeyHandoffError(
                f"unable to delete temp file with config key: {e}", path
            ) from e

        if read_error is not None:
            raise KeyHandoffError(
                f"unable to read obscured config key: {read_error}", path
            ) from read_error

        try:
            key = reveal_bytes(obscured)
        except ValueError as e:
            raise KeyHandoffError(f"invalid obscured config key: {e}", path) from e
        if len(key) != KEY_LENGTH:
            raise KeyHandoffError(
                f"obscured config key has wrong length {len(key)}", path
            )
        return key
