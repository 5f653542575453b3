"""
Crash-safe replacement of the config file.

The new content is written to a temporary file next to the target so the
final rename stays on one filesystem. The previous file is moved to a
``.old`` backup before the commit rename and removed afterwards, so an
interrupted save leaves either the previous config, its backup, or the
complete new config in place. Never a partial file.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

from remoteconf.config.errors import ConfigWriteError

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o600
BACKUP_SUFFIX = ".old"


class AtomicWriter:
    """
    Writes files durably and atomically, keeping one rotating backup.

    Usage:
        writer = AtomicWriter()
        writer.replace(Path("~/.config/rclone/rclone.conf"), content)

    Attributes:
        default_mode: Permission bits applied when there is no previous file.
    """

    def __init__(self, default_mode: int = DEFAULT_FILE_MODE) -> None:
        self.default_mode = default_mode

    @staticmethod
    def backup_path(target: Path) -> Path:
        """Return the backup location used while replacing target."""
        return target.with_name(target.name + BACKUP_SUFFIX)

    def replace(self, target: Path | str, content: bytes) -> None:
        """
        Atomically replace target with content.

        Args:
            target: Path of the file to replace.
            content: Complete new file content.

        Raises:
            ConfigWriteError: If the temp file cannot be created or written,
                or if either rename fails.
        """
        target = Path(target)
        directory = target.parent

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteError(
                f"Failed to create config directory: {e}", directory
            ) from e

        try:
            fd, temp_name = tempfile.mkstemp(dir=directory, prefix=target.name + ".")
        except OSError as e:
            raise ConfigWriteError(
                f"Failed to create temp file for new config: {e}", target
            ) from e
        temp_path = Path(temp_name)

        committed = False
        try:
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise ConfigWriteError(
                    f"Failed to write temp config file: {e}", temp_path
                ) from e

            backup = self.backup_path(target)
            # After an interrupted commit only the backup holds the previous file
            previous = target if target.exists() else backup
            mode = self._resolve_mode(previous)
            self._copy_group(previous, temp_path)
            try:
                os.chmod(temp_path, mode)
            except OSError as e:
                logger.error(f"Failed to set permissions on config file: {e}")

            try:
                os.replace(target, backup)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise ConfigWriteError(
                    f"Failed to move previous config to backup location: {e}", target
                ) from e

            try:
                os.replace(temp_path, target)
            except OSError as e:
                raise ConfigWriteError(
                    f"Failed to move newly written config from {temp_path} "
                    f"to final location: {e}",
                    target,
                ) from e
            committed = True

            try:
                backup.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Failed to remove backup config file: {e}")
        finally:
            if not committed:
                self._remove_temp(temp_path)

    def _resolve_mode(self, target: Path) -> int:
        """Reuse the permissions of the existing file, else the private default."""
        try:
            info = target.stat()
        except OSError:
            logger.debug(
                f"Using default permissions for config file: {oct(self.default_mode)}"
            )
            return self.default_mode
        mode = stat.S_IMODE(info.st_mode)
        if mode != self.default_mode:
            logger.debug(f"Keeping previous permissions for config file: {oct(mode)}")
        return mode

    @staticmethod
    def _copy_group(source: Path, destination: Path) -> None:
        """Best-effort copy of the owning group from source to destination."""
        if not hasattr(os, "chown"):
            return
        try:
            gid = source.stat().st_gid
            os.chown(destination, -1, gid)
        except OSError as e:
            logger.debug(f"Could not copy group of {source}: {e}")

    @staticmethod
    def _remove_temp(temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove temp config file: {e}")
