"""
In-memory model of a remotes config file.

A config file is a flat two-level map: remote name -> option name -> string
value. Both levels are ordered by insertion so that saving an unchanged
config reproduces the same file, which keeps diffs of the on-disk file
stable.

Design Decisions:
    - Values are always strings; callers parse numbers, booleans and
      durations themselves
    - Remote names and option names are unique within their level
    - Sections are handles: mutating a Section returned by get_remote()
      or create_remote() mutates the RemoteConfig that owns it
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class Section:
    """
    Options of a single remote.

    Attributes:
        name: Name of the remote this section belongs to.
    """

    def __init__(self, name: str, options: Mapping[str, str] | None = None) -> None:
        self.name = name
        self._options: dict[str, str] = {}
        for key, value in (options or {}).items():
            self.set_string(key, value)

    def keys(self) -> list[str]:
        """Return all option names in insertion order."""
        return list(self._options)

    def items(self) -> list[tuple[str, str]]:
        """Return (name, value) pairs in insertion order."""
        return list(self._options.items())

    def get_string(self, name: str) -> str:
        """Return the value of an option, or "" when it is not set."""
        return self._options.get(name, "")

    def set_string(self, name: str, value: str) -> None:
        """
        Set an option value.

        Existing options keep their position; new options are appended.

        Raises:
            TypeError: If name or value is not a string.
            ValueError: If name is empty.
        """
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError(
                f"Option names and values must be strings, got "
                f"{type(name).__name__}={type(value).__name__}"
            )
        if not name:
            raise ValueError("Option name must not be empty")
        self._options[name] = value

    def delete(self, name: str) -> bool:
        """Delete an option. Returns True if it existed."""
        return self._options.pop(name, None) is not None

    def has_key(self, name: str) -> bool:
        return name in self._options

    def to_dict(self) -> dict[str, str]:
        return dict(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __iter__(self) -> Iterator[str]:
        return iter(self._options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Section):
            return NotImplemented
        return self.name == other.name and self.items() == other.items()

    def __repr__(self) -> str:
        return f"Section({self.name!r}, {self._options!r})"


class RemoteConfig:
    """
    Ordered collection of named remote sections.

    Usage:
        config = RemoteConfig()
        section = config.create_remote("remote1")
        section.set_string("type", "local")

        config.get_remote("remote1").get_string("type")  # "local"
    """

    def __init__(self) -> None:
        self._sections: dict[str, Section] = {}

    def list_remotes(self) -> list[str]:
        """Return all remote names in insertion order."""
        return list(self._sections)

    def has_remote(self, remote: str) -> bool:
        return remote in self._sections

    def get_remote(self, remote: str) -> Section | None:
        """Return the section for a remote, or None if it does not exist."""
        return self._sections.get(remote)

    def create_remote(self, remote: str) -> Section:
        """
        Create a remote and return its section.

        Creating a remote that already exists does not add a duplicate; the
        existing section is returned and can be mutated in place.

        Raises:
            ValueError: If the remote name is empty.
        """
        if not remote:
            raise ValueError("Remote name must not be empty")
        section = self._sections.get(remote)
        if section is None:
            section = Section(remote)
            self._sections[remote] = section
        return section

    def delete_remote(self, remote: str) -> None:
        """Delete a remote. Deleting an unknown remote is a no-op."""
        self._sections.pop(remote, None)

    def copy_remote(self, source: str, destination: str) -> Section:
        """
        Copy every option of source into destination.

        The destination is created if needed; options it already has are
        overwritten by the source values.

        Raises:
            KeyError: If the source remote does not exist.
        """
        src = self._sections.get(source)
        if src is None:
            raise KeyError(f"Remote not found: {source}")
        dst = self.create_remote(destination)
        for key, value in src.items():
            dst.set_string(key, value)
        return dst

    def rename_remote(self, old_name: str, new_name: str) -> Section:
        """Rename a remote by copying it and deleting the original."""
        if old_name == new_name:
            section = self._sections.get(old_name)
            if section is None:
                raise KeyError(f"Remote not found: {old_name}")
            return section
        section = self.copy_remote(old_name, new_name)
        self.delete_remote(old_name)
        return section

    def file_get(self, remote: str, key: str) -> tuple[str, bool]:
        """
        Look up a single option.

        Returns:
            (value, True) when the remote exists, ("", False) otherwise.
            A missing option on an existing remote reads as "".
        """
        section = self._sections.get(remote)
        if section is None:
            return "", False
        return section.get_string(key), True

    def file_set(self, remote: str, key: str, value: str) -> None:
        """Set a single option, creating the remote if needed."""
        self.create_remote(remote).set_string(key, value)

    def clear(self) -> None:
        self._sections.clear()

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Convert to a plain nested dictionary."""
        return {name: section.to_dict() for name, section in self._sections.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> RemoteConfig:
        """Create from a nested dictionary of string values."""
        config = cls()
        for name, options in data.items():
            section = config.create_remote(name)
            for key, value in options.items():
                section.set_string(key, value)
        return config

    def __len__(self) -> int:
        return len(self._sections)

    def __contains__(self, remote: object) -> bool:
        return remote in self._sections

    def __iter__(self) -> Iterator[Section]:
        return iter(list(self._sections.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteConfig):
            return NotImplemented
        return list(self._sections.items()) == list(other._sections.items())

    def __repr__(self) -> str:
        return f"RemoteConfig({self.to_dict()!r})"
