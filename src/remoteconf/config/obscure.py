"""
Reversible obscuring of secrets.

Obscuring keeps a value from being readable at a glance. It is NOT
encryption: the key is built into the program, so anyone with the program
can reveal an obscured value. It is only used for the one-shot key handoff
file passed to a child process.

Format: URL-safe base64 (no padding) of a random 16-byte IV followed by the
AES-256-CTR keystream XOR of the UTF-8 text.
"""

import base64
import secrets

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

IV_LENGTH = 16

# Fixed obscuring key
_CRYPT_KEY = bytes(
    [
        0x9C, 0x93, 0x5B, 0x48, 0x73, 0x0A, 0x55, 0x4D,
        0x6B, 0xFD, 0x7C, 0x63, 0xC8, 0x86, 0xA9, 0x2B,
        0xD3, 0x90, 0x19, 0x8E, 0xB8, 0x12, 0x8A, 0xFB,
        0xF4, 0xDE, 0x16, 0x2B, 0x8B, 0x95, 0xF6, 0x38,
    ]
)


def _crypt(data: bytes, iv: bytes) -> bytes:
    cipher = Cipher(algorithms.AES(_CRYPT_KEY), modes.CTR(iv))
    ctx = cipher.encryptor()
    return ctx.update(data) + ctx.finalize()


def obscure(text: str) -> str:
    """Obscure text so it can be written somewhere without being plainly visible."""
    iv = secrets.token_bytes(IV_LENGTH)
    return base64.urlsafe_b64encode(iv + _crypt(text.encode(), iv)).rstrip(b"=").decode()


def reveal(text: str) -> str:
    """
    Reveal text produced by obscure().

    Raises:
        ValueError: If text is not valid obscured data.
    """
    stripped = text.strip()
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        data = base64.urlsafe_b64decode(padded.encode())
    except (ValueError, TypeError) as e:
        raise ValueError("base64 decode failed when revealing password - is it obscured?") from e
    if len(data) < IV_LENGTH:
        raise ValueError("input too short when revealing password - is it obscured?")
    iv, ciphertext = data[:IV_LENGTH], data[IV_LENGTH:]
    try:
        return _crypt(ciphertext, iv).decode()
    except UnicodeDecodeError as e:
        raise ValueError("revealed password is not valid UTF-8 - is it obscured?") from e


def obscure_bytes(data: bytes) -> str:
    """Obscure raw key material (latin-1 maps every byte to one character)."""
    return obscure(data.decode("latin-1"))


def reveal_bytes(text: str) -> bytes:
    """Inverse of obscure_bytes()."""
    return reveal(text).encode("latin-1")
