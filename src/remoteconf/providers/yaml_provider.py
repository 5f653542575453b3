"""
YAML config provider.

Stores remotes as a mapping of mappings:

    remote1:
      type: local
    s3:
      type: s3
      access_key_id: AKIA...

Scalars are read back as strings (``port: 22`` becomes ``"22"``); nested
structures are rejected because options are flat string values.
"""

from __future__ import annotations

from typing import Any

import yaml

from remoteconf.config.errors import ProviderError
from remoteconf.providers.base import Provider, ProviderDefinition, ProviderRegistry
from remoteconf.storage.models import RemoteConfig

FILE_TYPES = ["yaml", "yml"]


def _scalar_to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ProviderError(f"Nested values are not supported: {value!r}")
    return str(value)


class YamlProvider(Provider):
    """Provider for ``.yaml`` and ``.yml`` files."""

    extensions = tuple(FILE_TYPES)

    def load(self, data: bytes) -> RemoteConfig:
        try:
            document = yaml.safe_load(data) or {}
        except yaml.YAMLError as e:
            raise ProviderError(f"Invalid YAML in config file: {e}") from e

        if not isinstance(document, dict):
            raise ProviderError("YAML config must be a mapping of remote names")

        config = RemoteConfig()
        for name, options in document.items():
            section = config.create_remote(str(name))
            if options is None:
                continue
            if not isinstance(options, dict):
                raise ProviderError(f"Remote {name!r} must be a mapping of options")
            for key, value in options.items():
                section.set_string(str(key), _scalar_to_string(value))
        self.remote_config = config
        return config

    def save(self) -> bytes:
        text = yaml.safe_dump(
            self.remote_config.to_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        return text.encode("utf-8")


def register(registry: ProviderRegistry) -> None:
    """Register the YAML provider for its file types."""
    registry.register(ProviderDefinition(factory=YamlProvider, file_types=list(FILE_TYPES)))
