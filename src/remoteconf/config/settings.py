"""
Runtime settings for the config store.

Settings come from defaults, then environment variables, then whatever the
command line sets explicitly. The config file location follows the usual
search order: an explicit RCLONE_CONFIG path, an existing file in the XDG
config directory, ~/.config/rclone, or ~/.rclone.conf, and finally the XDG
location where a new file will be created.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from remoteconf.config.errors import ConfigurationError
from remoteconf.config.keys import DEFAULT_PASSWORD_ATTEMPTS, PBKDF2_ITERATIONS

CONFIG_FILE_NAME = "rclone.conf"
HIDDEN_CONFIG_FILE_NAME = "." + CONFIG_FILE_NAME

CONFIG_PATH_ENV = "RCLONE_CONFIG"
PASSWORD_ENV = "RCLONE_CONFIG_PASS"
KEY_FILE_ENV = "_RCLONE_CONFIG_KEY_FILE"

DEFAULT_LOW_LEVEL_RETRIES = 10


@dataclass
class StoreSettings:
    """
    Settings consumed by the ConfigStore.

    Attributes:
        config_path: Resolved path of the config file.
        ask_password: Whether a missing or wrong key may prompt the user.
        password: Password used non-interactively to derive the key.
        low_level_retries: Extra save attempts after the first failure.
        pass_key_to_child: Hand the derived key to child processes through
            an obscured temp file named in the key file environment variable.
        key_file: Obscured key handoff file left by a parent process.
        password_attempts: Failed decryptions tolerated when prompting.
        kdf_iterations: PBKDF2 iterations for password derivation.
    """

    config_path: Path
    ask_password: bool = True
    password: str | None = None
    low_level_retries: int = DEFAULT_LOW_LEVEL_RETRIES
    pass_key_to_child: bool = False
    key_file: Path | None = None
    password_attempts: int = DEFAULT_PASSWORD_ATTEMPTS
    kdf_iterations: int = PBKDF2_ITERATIONS


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns:
        Path to the config file. It may not exist yet.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()

    home = Path.home()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    config_dir = Path(xdg) / "rclone" if xdg else home / ".config" / "rclone"

    candidates = [
        config_dir / CONFIG_FILE_NAME,
        home / ".config" / "rclone" / CONFIG_FILE_NAME,
        home / HIDDEN_CONFIG_FILE_NAME,
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return config_dir / CONFIG_FILE_NAME


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value."""
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ConfigurationError(f"Invalid boolean value: {value!r}")


def load_settings(config_path: Path | None = None) -> StoreSettings:
    """
    Build settings from defaults and environment variables.

    Args:
        config_path: Optional config file path. If not provided, uses
                    RCLONE_CONFIG or the default search order.

    Returns:
        Validated StoreSettings instance.

    Raises:
        ConfigurationError: If an environment variable has an invalid value.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = StoreSettings(config_path=Path(config_path))
    settings = _apply_environment_overrides(settings)
    _validate_settings(settings)
    return settings


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid integer value: {value!r}") from e


def _apply_environment_overrides(settings: StoreSettings) -> StoreSettings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        PASSWORD_ENV: ("password", str),
        "RCLONE_ASK_PASSWORD": ("ask_password", parse_bool),
        "RCLONE_LOW_LEVEL_RETRIES": ("low_level_retries", _to_int),
        "RCLONE_PASSWORD_ATTEMPTS": ("password_attempts", _to_int),
        KEY_FILE_ENV: ("key_file", Path),
    }

    for env_var, (attr, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value:
            setattr(settings, attr, converter(value))

    return settings


def _validate_settings(settings: StoreSettings) -> None:
    """
    Validate settings.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    if settings.low_level_retries < 0:
        raise ConfigurationError("low_level_retries must not be negative")
    if settings.password_attempts < 1:
        raise ConfigurationError("password_attempts must be at least 1")
    if settings.kdf_iterations < 1:
        raise ConfigurationError("kdf_iterations must be at least 1")
