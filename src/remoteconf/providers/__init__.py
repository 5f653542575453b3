"""
Config file formats.

Supported formats:
    - INI (``.conf``, ``.ini``), the classic remotes file
    - YAML (``.yaml``, ``.yml``)

Formats are not registered on import. default_registry() returns a new
registry populated by each format module's register() call.
"""

from remoteconf.providers import ini_provider, yaml_provider
from remoteconf.providers.base import Provider, ProviderDefinition, ProviderRegistry
from remoteconf.providers.ini_provider import IniProvider
from remoteconf.providers.yaml_provider import YamlProvider


def default_registry() -> ProviderRegistry:
    """Return a registry holding every built-in format."""
    registry = ProviderRegistry()
    ini_provider.register(registry)
    yaml_provider.register(registry)
    return registry


__all__ = [
    "Provider",
    "ProviderDefinition",
    "ProviderRegistry",
    "IniProvider",
    "YamlProvider",
    "default_registry",
]
