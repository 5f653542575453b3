"""
remoteconf - encrypted store for remote backend configurations

Keeps named configuration sections ("remotes"), each a flat map of string
options, in a single config file. The file can be encrypted with a
password; writes are atomic and keep the previous file until the new one
is in place.

Key Features:
    - Pluggable file formats selected by extension (INI, YAML)
    - NaCl secretbox encryption with a password-derived key
    - Key handoff to child processes without re-prompting
    - Crash-safe atomic saves with retry and jitter
"""

__version__ = "0.1.0"

from remoteconf.config.settings import StoreSettings, load_settings
from remoteconf.config.store import ConfigStore
from remoteconf.storage.models import RemoteConfig, Section

__all__ = [
    "__version__",
    "ConfigStore",
    "StoreSettings",
    "load_settings",
    "RemoteConfig",
    "Section",
]
