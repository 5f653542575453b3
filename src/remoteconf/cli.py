"""
Command-line interface for remoteconf.

Provides commands to list, show and edit remotes, and to turn config file
encryption on or off.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import NoReturn

from remoteconf import __version__
from remoteconf.config.errors import (
    ConfigStoreError,
    ConfigurationError,
    InvalidPasswordError,
)
from remoteconf.config.settings import load_settings
from remoteconf.config.store import ConfigStore, load_or_exit, save_or_exit

# Set up logging
logger = logging.getLogger(__name__)

# Global verbosity setting (set during main() based on args)
_quiet_mode = False


def set_output_mode(quiet: bool = False) -> None:
    """Set the output mode for the CLI."""
    global _quiet_mode
    _quiet_mode = quiet


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for command results).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def parse_options(pairs: list[str]) -> list[tuple[str, str]]:
    """
    Parse KEY=VALUE arguments.

    Raises:
        ValueError: If an argument has no '=' or an empty key.
    """
    options = []
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        options.append((key, value))
    return options


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the remoteconf CLI."""
    parser = argparse.ArgumentParser(
        prog="remoteconf",
        description="Manage the remotes config file",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"remoteconf {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Config file location (default: $RCLONE_CONFIG or ~/.config/rclone/rclone.conf)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    parser.add_argument(
        "--ask-password",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allow prompting for the config password (default: yes)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    list_parser = subparsers.add_parser("listremotes", help="List all remotes")
    list_parser.set_defaults(func=cmd_listremotes)

    show_parser = subparsers.add_parser("show", help="Print the config, or one remote")
    show_parser.add_argument("name", nargs="?", help="Remote to show")
    show_parser.set_defaults(func=cmd_show)

    create_parser_ = subparsers.add_parser("create", help="Create a remote")
    create_parser_.add_argument("name", help="Remote name")
    create_parser_.add_argument("options", nargs="*", metavar="KEY=VALUE")
    create_parser_.set_defaults(func=cmd_create)

    update_parser = subparsers.add_parser("update", help="Set options on a remote")
    update_parser.add_argument("name", help="Remote name")
    update_parser.add_argument("options", nargs="+", metavar="KEY=VALUE")
    update_parser.set_defaults(func=cmd_update)

    delete_parser = subparsers.add_parser("delete", help="Delete a remote")
    delete_parser.add_argument("name", help="Remote name")
    delete_parser.set_defaults(func=cmd_delete)

    rename_parser = subparsers.add_parser("rename", help="Rename a remote")
    rename_parser.add_argument("old_name")
    rename_parser.add_argument("new_name")
    rename_parser.set_defaults(func=cmd_rename)

    copy_parser = subparsers.add_parser("copy", help="Copy a remote")
    copy_parser.add_argument("source")
    copy_parser.add_argument("destination")
    copy_parser.set_defaults(func=cmd_copy)

    encrypt_parser = subparsers.add_parser(
        "encrypt", help="Set or change the config password"
    )
    encrypt_parser.set_defaults(func=cmd_encrypt)

    decrypt_parser = subparsers.add_parser(
        "decrypt", help="Remove the config password and store in plaintext"
    )
    decrypt_parser.set_defaults(func=cmd_decrypt)

    file_parser = subparsers.add_parser("file", help="Show the config file path")
    file_parser.set_defaults(func=cmd_file)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.ERROR
    elif verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_store(args: argparse.Namespace) -> ConfigStore:
    """Create a ConfigStore from settings and command line overrides."""
    settings = load_settings(Path(args.config) if args.config else None)
    if args.ask_password is not None:
        settings.ask_password = args.ask_password
    return ConfigStore(settings)


def cmd_listremotes(args: argparse.Namespace) -> int:
    """List remote names, one per line."""
    store = build_store(args)
    remotes = load_or_exit(store)
    for name in remotes.list_remotes():
        output(f"{name}:", force=True)
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print the whole config, or a single remote."""
    store = build_store(args)
    remotes = load_or_exit(store)

    if args.name is None:
        output(store.dump().rstrip("\n"), force=True)
        return 0

    section = remotes.get_remote(args.name)
    if section is None:
        output_error(f"Error: Remote not found: {args.name}")
        return 1
    output(f"[{section.name}]", force=True)
    for key, value in section.items():
        output(f"{key} = {value}", force=True)
    return 0


def cmd_create(args: argparse.Namespace) -> int:
    """Create a remote with optional KEY=VALUE options."""
    options = parse_options(args.options)
    store = build_store(args)
    remotes = load_or_exit(store)

    if remotes.has_remote(args.name):
        output_error(f"Error: Remote already exists: {args.name}")
        return 1

    section = remotes.create_remote(args.name)
    for key, value in options:
        section.set_string(key, value)
    save_or_exit(store)
    output(f"Created remote: {args.name}")
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    """Set options on an existing remote."""
    options = parse_options(args.options)
    store = build_store(args)
    remotes = load_or_exit(store)

    section = remotes.get_remote(args.name)
    if section is None:
        output_error(f"Error: Remote not found: {args.name}")
        return 1

    for key, value in options:
        section.set_string(key, value)
    save_or_exit(store)
    output(f"Updated remote: {args.name}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a remote."""
    store = build_store(args)
    remotes = load_or_exit(store)

    if not remotes.has_remote(args.name):
        output_error(f"Error: Remote not found: {args.name}")
        return 1

    remotes.delete_remote(args.name)
    save_or_exit(store)
    output(f"Deleted remote: {args.name}")
    return 0


def cmd_rename(args: argparse.Namespace) -> int:
    """Rename a remote."""
    store = build_store(args)
    remotes = load_or_exit(store)

    if not remotes.has_remote(args.old_name):
        output_error(f"Error: Remote not found: {args.old_name}")
        return 1
    if remotes.has_remote(args.new_name):
        output_error(f"Error: Remote already exists: {args.new_name}")
        return 1

    remotes.rename_remote(args.old_name, args.new_name)
    save_or_exit(store)
    output(f"Renamed remote: {args.old_name} -> {args.new_name}")
    return 0


def cmd_copy(args: argparse.Namespace) -> int:
    """Copy a remote to a new name."""
    store = build_store(args)
    remotes = load_or_exit(store)

    if not remotes.has_remote(args.source):
        output_error(f"Error: Remote not found: {args.source}")
        return 1
    if remotes.has_remote(args.destination):
        output_error(f"Error: Remote already exists: {args.destination}")
        return 1

    remotes.copy_remote(args.source, args.destination)
    save_or_exit(store)
    output(f"Copied remote: {args.source} -> {args.destination}")
    return 0


def cmd_encrypt(args: argparse.Namespace) -> int:
    """Set or change the config password."""
    store = build_store(args)
    load_or_exit(store)

    while True:
        password = getpass.getpass("Enter NEW configuration password: ", stream=sys.stderr)
        confirm = getpass.getpass("Confirm NEW configuration password: ", stream=sys.stderr)
        if password != confirm:
            output_error("Error: Passwords do not match.")
            continue
        try:
            store.set_password(password)
        except InvalidPasswordError as e:
            output_error(f"Error: {e}")
            continue
        break

    save_or_exit(store)
    output("Config file is now encrypted.")
    return 0


def cmd_decrypt(args: argparse.Namespace) -> int:
    """Remove the config password."""
    store = build_store(args)
    load_or_exit(store)

    if not store.is_encrypted:
        output("Config file is not encrypted.")
        return 0

    store.clear_password()
    save_or_exit(store)
    output("Config file is now stored in plaintext.")
    return 0


def cmd_file(args: argparse.Namespace) -> int:
    """Show the config file path and whether it exists."""
    settings = load_settings(Path(args.config) if args.config else None)
    path = settings.config_path
    if path.exists():
        output(f"Configuration file is stored at:\n{path}", force=True)
    else:
        output(f"Configuration file doesn't exist, but would be stored at:\n{path}", force=True)
    return 0


def main() -> NoReturn:
    """Main entry point for the remoteconf CLI."""
    parser = create_parser()
    args = parser.parse_args()

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except (KeyboardInterrupt, EOFError):
        output("\nOperation cancelled.")
        sys.exit(130)
    except ValueError as e:
        output_error(f"Error: {e}")
        sys.exit(2)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except ConfigStoreError as e:
        logger.critical(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
