"""
Pluggable on-disk formats for the remotes config.

A Provider transcodes between plaintext bytes and a RemoteConfig. It never
touches the filesystem and never sees encrypted data: the ConfigStore reads
the file, the codec decrypts it, and only then does the provider parse it.

Providers are selected by config file extension through a ProviderRegistry.
Each format module exposes a ``register(registry)`` function; the registry
is an ordinary object handed to the ConfigStore, so tests can build a
registry holding exactly the formats they need.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from remoteconf.config.errors import ProviderNotFoundError
from remoteconf.storage.models import RemoteConfig

logger = logging.getLogger(__name__)


class Provider(ABC):
    """
    Abstract base class for config file formats.

    Subclasses implement load() and save() for one textual format.

    Example:
        class JsonProvider(Provider):
            extensions = ("json",)

            def load(self, data: bytes) -> RemoteConfig:
                self.remote_config = RemoteConfig.from_dict(json.loads(data))
                return self.remote_config

            def save(self) -> bytes:
                return json.dumps(self.remote_config.to_dict()).encode()
    """

    extensions: tuple[str, ...] = ()

    def __init__(self) -> None:
        self.remote_config = RemoteConfig()

    @abstractmethod
    def load(self, data: bytes) -> RemoteConfig:
        """
        Parse plaintext config data, replacing the current remotes.

        Raises:
            ProviderError: If data is not valid for this format.
        """

    @abstractmethod
    def save(self) -> bytes:
        """Serialize the current remotes to plaintext config data."""

    def get_remote_config(self) -> RemoteConfig:
        return self.remote_config

    def __str__(self) -> str:
        return self.save().decode("utf-8")


@dataclass
class ProviderDefinition:
    """
    Describes how to build a provider and which file types it handles.

    Attributes:
        factory: Callable returning a new, empty provider. It must not load.
        file_types: File extensions without the leading dot.
    """

    factory: Callable[[], Provider]
    file_types: list[str] = field(default_factory=list)


class ProviderRegistry:
    """
    Maps file extensions to provider definitions.

    Example:
        registry = ProviderRegistry()
        ini_provider.register(registry)

        provider = registry.create_for_path(Path("rclone.conf"))
    """

    def __init__(self) -> None:
        self._definitions: list[ProviderDefinition] = []

    def register(self, definition: ProviderDefinition) -> ProviderDefinition:
        """Register a provider definition. Earlier registrations win on conflicts."""
        self._definitions.append(definition)
        logger.debug(
            f"Registered config provider: {', '.join(definition.file_types)}"
        )
        return definition

    def file_types(self) -> list[str]:
        """Return every registered extension, sorted."""
        return sorted({ft for d in self._definitions for ft in d.file_types})

    def for_extension(self, extension: str) -> ProviderDefinition | None:
        """Return the definition handling extension, or None."""
        extension = extension.lstrip(".").lower()
        for definition in self._definitions:
            if extension in (ft.lower() for ft in definition.file_types):
                return definition
        return None

    def for_path(self, path: Path | str) -> ProviderDefinition:
        """
        Return the definition for a config file path.

        Raises:
            ProviderNotFoundError: If no provider handles the extension.
        """
        path = Path(path)
        definition = self.for_extension(path.suffix)
        if definition is None:
            raise ProviderNotFoundError(
                f"No config provider for file type {path.suffix or '(none)'!r}. "
                f"Supported: {', '.join(self.file_types()) or 'none'}",
                path,
            )
        return definition

    def create_for_path(self, path: Path | str) -> Provider:
        """Instantiate the provider for a config file path."""
        return self.for_path(path).factory()

    def __len__(self) -> int:
        return len(self._definitions)
