"""
INI config provider.

Reads and writes the classic remotes file:

    [remote1]
    type = local

    [s3]
    type = s3
    access_key_id = AKIA...

Option names keep their case, values are taken literally (no ``%``
interpolation) and the order of remotes and options is preserved.
Duplicate sections or options in a hand-edited file are merged, the last
value winning.

A value that INI cannot hold verbatim (surrounding whitespace, line breaks,
or a leading double quote) is written as a JSON string literal:

    [sftp]
    pass = "  secret  "
    key_pem = "-----BEGIN KEY-----\\nMIIE...\\n-----END KEY-----"

Values that start and end with a double quote are unquoted on load.
"""

from __future__ import annotations

import configparser
import io
import json

from remoteconf.config.errors import ProviderError
from remoteconf.providers.base import Provider, ProviderDefinition, ProviderRegistry
from remoteconf.storage.models import RemoteConfig

FILE_TYPES = ["conf", "ini"]

# configparser treats its default section specially; use a name no real
# config can contain so that a remote called "DEFAULT" is an ordinary remote.
_DEFAULT_SECTION = "\x00defaults"

_QUOTE = '"'


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section=_DEFAULT_SECTION,
        delimiters=("=",),
    )
    parser.optionxform = str  # type: ignore[assignment, method-assign]
    return parser


def quote_value(value: str) -> str:
    """Return value in a form that configparser reads back unchanged."""
    if value != value.strip() or "\n" in value or "\r" in value or value.startswith(_QUOTE):
        return json.dumps(value, ensure_ascii=False)
    return value


def unquote_value(value: str) -> str:
    """Inverse of quote_value(). Hand-written quotes that are not JSON are kept."""
    if len(value) >= 2 and value.startswith(_QUOTE) and value.endswith(_QUOTE):
        try:
            unquoted = json.loads(value)
        except ValueError:
            return value
        if isinstance(unquoted, str):
            return unquoted
    return value


def _check_key(remote: str, key: str) -> None:
    if (
        not key
        or key != key.strip()
        or any(c in key for c in "=\n\r")
        or key[0] in "[;#"
    ):
        raise ProviderError(
            f"Option name {key!r} in remote {remote!r} cannot be stored in an INI file"
        )


def _check_name(name: str) -> None:
    if name != name.strip() or any(c in name for c in "[]\n\r\x00"):
        raise ProviderError(f"Remote name {name!r} cannot be stored in an INI file")


class IniProvider(Provider):
    """Provider for ``.conf`` and ``.ini`` files."""

    extensions = tuple(FILE_TYPES)

    def load(self, data: bytes) -> RemoteConfig:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ProviderError(f"Config file is not valid UTF-8: {e}") from e

        parser = _new_parser()
        try:
            parser.read_string(text)
        except configparser.Error as e:
            raise ProviderError(f"Invalid INI config: {e}") from e

        config = RemoteConfig()
        for name in parser.sections():
            section = config.create_remote(name)
            for key, value in parser.items(name, raw=True):
                section.set_string(key, unquote_value(value))
        self.remote_config = config
        return config

    def save(self) -> bytes:
        parser = _new_parser()
        for section in self.remote_config:
            _check_name(section.name)
            for key in section.keys():
                _check_key(section.name, key)
            parser[section.name] = {
                key: quote_value(value) for key, value in section.items()
            }

        buf = io.StringIO()
        parser.write(buf)
        return buf.getvalue().encode("utf-8")


def register(registry: ProviderRegistry) -> None:
    """Register the INI provider for its file types."""
    registry.register(ProviderDefinition(factory=IniProvider, file_types=list(FILE_TYPES)))
