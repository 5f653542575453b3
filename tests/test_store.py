"""Tests for ConfigStore load/save orchestration."""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from remoteconf.config import codec
from remoteconf.config.errors import (
    AuthenticationFailedError,
    ConfigReadError,
    ConfigWriteError,
    NoPasswordAvailableError,
    ProviderNotFoundError,
    UnsupportedVersionError,
)
from remoteconf.config.keys import derive_key
from remoteconf.config.settings import KEY_FILE_ENV, StoreSettings
from remoteconf.config.store import ConfigStore, load_or_exit, save_or_exit
from remoteconf.providers import IniProvider, ProviderRegistry, ini_provider
from remoteconf.storage.models import RemoteConfig

TEST_ITERATIONS = 1000


class StoreTestCase(unittest.TestCase):
    """Base class providing a temporary config directory."""

    def setUp(self) -> None:
        """Create temporary directory for tests."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "rclone.conf"

    def tearDown(self) -> None:
        """Clean up temporary directory."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_settings(self, **kwargs) -> StoreSettings:
        kwargs.setdefault("config_path", self.config_path)
        kwargs.setdefault("ask_password", False)
        kwargs.setdefault("kdf_iterations", TEST_ITERATIONS)
        kwargs.setdefault("low_level_retries", 0)
        return StoreSettings(**kwargs)

    def make_store(self, prompt=None, **kwargs) -> ConfigStore:
        return ConfigStore(self.make_settings(**kwargs), prompt=prompt, sleep=MagicMock())

    def save_encrypted(self, remotes: dict, password: str) -> None:
        store = self.make_store()
        store.load()
        for name, options in remotes.items():
            section = store.remote_config.create_remote(name)
            for key, value in options.items():
                section.set_string(key, value)
        store.set_password(password)
        store.save()


class TestLoad(StoreTestCase):
    """Tests for ConfigStore.load()."""

    def test_missing_file_is_empty_config(self) -> None:
        """Test a missing file loads as zero remotes without error."""
        store = self.make_store()

        with self.assertLogs("remoteconf.config.store", level="WARNING") as logs:
            remotes = store.load()

        self.assertEqual(remotes.list_remotes(), [])
        self.assertIn("not found", logs.output[0])
        self.assertFalse(self.config_path.exists())

    def test_load_plaintext(self) -> None:
        """Test loading an existing plaintext file."""
        self.config_path.write_text("[remote1]\ntype = local\n")

        remotes = self.make_store().load()

        self.assertEqual(remotes.get_remote("remote1").get_string("type"), "local")

    def test_unknown_extension(self) -> None:
        """Test loading fails when no provider handles the extension."""
        store = self.make_store(config_path=Path(self.temp_dir) / "rclone.toml")

        with self.assertRaises(ProviderNotFoundError):
            store.load()

    def test_unsupported_version(self) -> None:
        """Test a newer encryption version is rejected."""
        self.config_path.write_text("RCLONE_ENCRYPT_V1:\nAAAA\n")

        with self.assertRaises(UnsupportedVersionError):
            self.make_store().load()

    def test_read_error(self) -> None:
        """Test a path that cannot be read as a file is a read error."""
        self.config_path.mkdir()

        with self.assertRaises(ConfigReadError):
            self.make_store().load()

    def test_encrypted_without_password(self) -> None:
        """Test an encrypted file cannot be loaded non-interactively without a key."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")

        with self.assertRaises(NoPasswordAvailableError):
            self.make_store().load()

    def test_encrypted_with_settings_password(self) -> None:
        """Test the configured password is used to decrypt."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")

        store = self.make_store(password="secret")
        remotes = store.load()

        self.assertEqual(remotes.get_remote("remote1").get_string("type"), "local")
        self.assertTrue(store.is_encrypted)

    def test_encrypted_with_wrong_settings_password(self) -> None:
        """Test a wrong non-interactive password fails authentication."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")

        with self.assertLogs("remoteconf.config.codec", level="ERROR"):
            with self.assertRaises(AuthenticationFailedError):
                self.make_store(password="wrong").load()

    def test_blank_settings_password_is_logged(self) -> None:
        """Test an unusable configured password is logged, not fatal."""
        with self.assertLogs("remoteconf.config.store", level="ERROR") as logs:
            self.make_store(password="   ").load()

        self.assertTrue(any("RCLONE_CONFIG_PASS" in line for line in logs.output))

    def test_wrong_password_twice_then_correct(self) -> None:
        """Test loading succeeds only once the correct password is entered."""
        self.save_encrypted({"remote1": {"type": "local"}}, "correct")
        answers = iter(["wrong1", "wrong2", "correct"])
        prompt = MagicMock(side_effect=lambda _: next(answers))
        store = self.make_store(prompt=prompt, ask_password=True, password_attempts=3)

        with self.assertLogs("remoteconf.config.codec", level="ERROR") as logs:
            remotes = store.load()

        self.assertEqual(prompt.call_count, 3)
        self.assertEqual(len(logs.output), 2)
        self.assertEqual(remotes.get_remote("remote1").get_string("type"), "local")

    def test_wrong_password_every_time(self) -> None:
        """Test loading fails after the attempt limit with wrong passwords."""
        self.save_encrypted({"remote1": {"type": "local"}}, "correct")
        prompt = MagicMock(return_value="wrong")
        store = self.make_store(prompt=prompt, ask_password=True, password_attempts=3)

        with self.assertLogs("remoteconf.config.codec", level="ERROR"):
            with self.assertRaises(AuthenticationFailedError):
                store.load()

        self.assertEqual(prompt.call_count, 3)
        self.assertEqual(len(store.remote_config), 0)

    def test_handoff_key_file(self) -> None:
        """Test a key handed over by a parent process is used and deleted."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")
        parent = self.make_store()
        parent.keychain.set_key(derive_key("secret", TEST_ITERATIONS))
        key_file = parent.keychain.export_handoff_file()

        child = self.make_store(key_file=key_file)
        remotes = child.load()

        self.assertTrue(remotes.has_remote("remote1"))
        self.assertFalse(key_file.exists())

    def export_key_file(self, password: str) -> Path:
        parent = self.make_store()
        parent.keychain.set_key(derive_key(password, TEST_ITERATIONS))
        return parent.keychain.export_handoff_file()

    def test_handoff_key_file_wins_over_password(self) -> None:
        """Test a pending key file is used and deleted even when a password is set."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")
        key_file = self.export_key_file("secret")

        child = self.make_store(password="wrong", key_file=key_file)
        remotes = child.load()

        self.assertTrue(remotes.has_remote("remote1"))
        self.assertFalse(key_file.exists())

    def test_handoff_key_file_consumed_with_matching_password(self) -> None:
        """Test the key file is consumed when the password would also work."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")
        key_file = self.export_key_file("secret")

        self.make_store(password="secret", key_file=key_file).load()

        self.assertFalse(key_file.exists())

    def test_reprompt_leaves_single_handoff_file(self) -> None:
        """Test wrong passwords entered at the prompt leave no key files behind."""
        self.save_encrypted({"remote1": {"type": "local"}}, "correct")
        key_dir = Path(self.temp_dir) / "keys"
        key_dir.mkdir()
        answers = iter(["wrong1", "wrong2", "correct"])
        prompt = MagicMock(side_effect=lambda _: next(answers))
        store = self.make_store(
            prompt=prompt, ask_password=True, pass_key_to_child=True
        )

        with patch.object(tempfile, "tempdir", str(key_dir)), \
                patch.dict(os.environ, {}, clear=False):
            with self.assertLogs("remoteconf.config.codec", level="ERROR"):
                store.load()
            published = os.environ[KEY_FILE_ENV]

        self.assertEqual(list(key_dir.iterdir()), [store.keychain.handoff_path])
        self.assertEqual(published, str(store.keychain.handoff_path))


class TestSave(StoreTestCase):
    """Tests for ConfigStore.save()."""

    def test_round_trip_plaintext(self) -> None:
        """Test save then load with no key reproduces the remotes."""
        store = self.make_store()
        store.load()
        store.remote_config.create_remote("remote1").set_string("type", "local")
        store.save()

        reloaded = self.make_store().load()

        self.assertEqual(reloaded.get_remote("remote1").get_string("type"), "local")
        self.assertEqual(self.config_path.read_text(), "[remote1]\ntype = local\n\n")

    def test_round_trip_encrypted(self) -> None:
        """Test save then load with the same key reproduces the remotes."""
        data = {
            "remote1": {"type": "local"},
            "s3": {"type": "s3", "secret_access_key": "p@ss%word"},
        }
        self.save_encrypted(data, "secret")

        raw = self.config_path.read_bytes()
        self.assertTrue(codec.is_encrypted(raw))
        self.assertNotIn(b"secret_access_key", raw)

        reloaded = self.make_store(password="secret").load()
        self.assertEqual(reloaded, RemoteConfig.from_dict(data))

    def test_round_trip_encrypted_awkward_values(self) -> None:
        """Test values with padding, comments and line breaks survive encryption."""
        data = {
            "sftp": {
                "type": "sftp",
                "pass": "  padded secret  ",
                "key_pem": "-----BEGIN KEY-----\n  MIIE\n-----END KEY-----\n",
                "comment": "# not a comment",
                "quoted": '"as typed"',
                "label": "ünïcødé 100%",
            }
        }
        self.save_encrypted(data, "secret")

        reloaded = self.make_store(password="secret").load()

        self.assertEqual(reloaded.to_dict(), data)

    def test_round_trip_yaml(self) -> None:
        """Test the YAML format is selected by extension."""
        path = Path(self.temp_dir) / "remotes.yaml"
        store = self.make_store(config_path=path)
        store.load()
        store.remote_config.create_remote("remote1").set_string("type", "local")
        store.save()

        self.assertIn("remote1:", path.read_text())
        self.assertEqual(
            self.make_store(config_path=path).load().to_dict(),
            {"remote1": {"type": "local"}},
        )

    def test_clear_password_writes_plaintext(self) -> None:
        """Test removing the password stores the next save in plaintext."""
        self.save_encrypted({"remote1": {"type": "local"}}, "secret")
        store = self.make_store(password="secret")
        store.load()

        store.clear_password()
        store.save()

        self.assertFalse(store.is_encrypted)
        self.assertFalse(codec.is_encrypted(self.config_path.read_bytes()))
        self.assertTrue(self.make_store().load().has_remote("remote1"))

    def test_save_retries_with_jitter(self) -> None:
        """Test failed writes are retried after a random sub-second delay."""
        writer = MagicMock()
        writer.replace.side_effect = [
            ConfigWriteError("busy"),
            ConfigWriteError("busy"),
            None,
        ]
        sleep = MagicMock()
        store = ConfigStore(
            self.make_settings(low_level_retries=5), writer=writer, sleep=sleep
        )
        store.load()

        store.save()

        self.assertEqual(writer.replace.call_count, 3)
        self.assertEqual(sleep.call_count, 2)
        for call in sleep.call_args_list:
            self.assertGreaterEqual(call.args[0], 0)
            self.assertLess(call.args[0], 1)

    def test_save_gives_up_after_retries(self) -> None:
        """Test exhausting the retry budget raises ConfigWriteError."""
        writer = MagicMock()
        writer.replace.side_effect = ConfigWriteError("disk full")
        store = ConfigStore(
            self.make_settings(low_level_retries=2), writer=writer, sleep=MagicMock()
        )
        store.load()

        with self.assertRaises(ConfigWriteError) as ctx:
            store.save()

        self.assertEqual(writer.replace.call_count, 3)
        self.assertIn("after 3 tries", str(ctx.exception))

    def test_dump(self) -> None:
        """Test dump() returns the plaintext serialization."""
        store = self.make_store()
        store.load()
        store.remote_config.create_remote("r").set_string("type", "local")

        self.assertEqual(store.dump(), "[r]\ntype = local\n\n")

    def test_custom_registry(self) -> None:
        """Test the store uses the registry it is given."""
        registry = ProviderRegistry()
        ini_provider.register(registry)
        store = ConfigStore(self.make_settings(), registry=registry)

        self.assertIsInstance(store.provider, IniProvider)

    def test_pass_key_to_child_publishes_env(self) -> None:
        """Test the handoff file path is published for child processes."""
        store = self.make_store(pass_key_to_child=True)
        store.load()

        with patch.dict(os.environ, {}, clear=False):
            store.set_password("secret")
            path = Path(os.environ[KEY_FILE_ENV])
            try:
                self.assertTrue(path.exists())
            finally:
                path.unlink(missing_ok=True)

    def test_clear_password_withdraws_handoff_file(self) -> None:
        """Test removing the password deletes the published key file."""
        store = self.make_store(pass_key_to_child=True)
        store.load()

        with patch.dict(os.environ, {}, clear=False):
            store.set_password("secret")
            path = Path(os.environ[KEY_FILE_ENV])

            store.clear_password()

            self.assertNotIn(KEY_FILE_ENV, os.environ)
        self.assertFalse(path.exists())


class TestExitHelpers(StoreTestCase):
    """Tests for load_or_exit and save_or_exit."""

    def test_load_or_exit_on_fatal_error(self) -> None:
        """Test unrecoverable load errors exit with status 1."""
        self.config_path.write_text("RCLONE_ENCRYPT_V9:\n")

        with self.assertLogs("remoteconf.config.store", level="CRITICAL"):
            with self.assertRaises(SystemExit) as ctx:
                load_or_exit(self.make_store())

        self.assertEqual(ctx.exception.code, 1)

    def test_load_or_exit_missing_file(self) -> None:
        """Test a missing file does not exit."""
        with self.assertLogs("remoteconf.config.store", level="WARNING"):
            remotes = load_or_exit(self.make_store())

        self.assertEqual(len(remotes), 0)

    def test_save_or_exit_on_failure(self) -> None:
        """Test exhausted save retries exit with status 1."""
        writer = MagicMock()
        writer.replace.side_effect = ConfigWriteError("disk full")
        store = ConfigStore(self.make_settings(), writer=writer, sleep=MagicMock())

        with self.assertLogs("remoteconf.config.store", level="CRITICAL"):
            with self.assertRaises(SystemExit) as ctx:
                save_or_exit(store)

        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
