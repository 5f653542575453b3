"""
Encrypted container codec.

A config file is either plaintext in the provider's native format, or an
encrypted container:

    # Encrypted rclone configuration File

    RCLONE_ENCRYPT_V0:
    <base64 of nonce[24] || secretbox(plaintext)>

The first line that is not blank and not a comment (``;`` or ``#``)
decides: the V0 sentinel means encrypted, any other ``RCLONE_ENCRYPT_V``
line is an unknown version and is rejected, anything else is plaintext.

Encryption is NaCl secretbox (XSalsa20-Poly1305) with a fresh random
24-byte nonce on every save.
"""

from __future__ import annotations

import base64
import binascii
import logging

import nacl.utils
from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from remoteconf.config.errors import (
    AuthenticationFailedError,
    ConfigFormatError,
    TruncatedDataError,
    UnsupportedVersionError,
)
from remoteconf.config.keys import KEY_LENGTH, KeyChain

logger = logging.getLogger(__name__)

SENTINEL_PREFIX = "RCLONE_ENCRYPT_V"
SENTINEL_V0 = SENTINEL_PREFIX + "0:"
BANNER = "# Encrypted rclone configuration File"
NONCE_LENGTH = SecretBox.NONCE_SIZE
TAG_LENGTH = SecretBox.MACBYTES
BASE64_LINE_LENGTH = 64


def _find_payload(raw: bytes) -> int | None:
    """
    Locate the encrypted payload.

    Returns:
        Offset just past the V0 sentinel line, or None for plaintext.

    Raises:
        UnsupportedVersionError: If the sentinel names an unknown version.
    """
    offset = 0
    for line in raw.splitlines(keepends=True):
        offset += len(line)
        text = line.decode("utf-8", errors="replace").strip()
        if not text or text.startswith(";") or text.startswith("#"):
            continue
        if text == SENTINEL_V0:
            return offset
        if text.startswith(SENTINEL_PREFIX):
            raise UnsupportedVersionError(
                "unsupported configuration encryption - update for support"
            )
        return None
    return None


def is_encrypted(raw: bytes) -> bool:
    """Return True if raw is an encrypted V0 container."""
    return _find_payload(raw) is not None


def decrypt(raw: bytes, keychain: KeyChain) -> bytes:
    """
    Return the plaintext config body of raw.

    Plaintext input is returned unchanged. Encrypted input is opened with
    keys from keychain, retrying while the keychain can supply another.

    Raises:
        UnsupportedVersionError: Unknown encryption sentinel.
        ConfigFormatError: Payload is not valid base64.
        TruncatedDataError: Payload shorter than nonce plus tag.
        AuthenticationFailedError: No available key opens the payload.
        NoPasswordAvailableError: Encrypted, but no key source is usable.
    """
    offset = _find_payload(raw)
    if offset is None:
        return raw

    payload = b"".join(raw[offset:].split())
    try:
        box_data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ConfigFormatError(f"failed to load base64 encoded data: {e}") from e
    if len(box_data) < NONCE_LENGTH + TAG_LENGTH:
        raise TruncatedDataError("Configuration data too short")

    nonce, ciphertext = box_data[:NONCE_LENGTH], box_data[NONCE_LENGTH:]
    while True:
        key = keychain.acquire()
        try:
            return SecretBox(key).decrypt(ciphertext, nonce)
        except CryptoError:
            logger.error("Couldn't decrypt configuration, most likely wrong password.")
            keychain.reject()
            if not keychain.can_retry:
                raise AuthenticationFailedError(
                    "unable to decrypt configuration - wrong password "
                    f"after {keychain.failures} attempt(s)"
                ) from None


def encrypt(plaintext: bytes, key: bytes | None) -> bytes:
    """
    Wrap plaintext in the encrypted container.

    With no key the plaintext is returned verbatim.

    Raises:
        ValueError: If key is not 32 bytes.
    """
    if key is None:
        return plaintext
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Config key must be {KEY_LENGTH} bytes, got {len(key)}")

    nonce = nacl.utils.random(NONCE_LENGTH)
    sealed = SecretBox(key).encrypt(plaintext, nonce)
    encoded = base64.b64encode(bytes(sealed)).decode("ascii")
    lines = [
        encoded[i : i + BASE64_LINE_LENGTH]
        for i in range(0, len(encoded), BASE64_LINE_LENGTH)
    ]
    return "\n".join([BANNER, "", SENTINEL_V0, *lines, ""]).encode("ascii")
