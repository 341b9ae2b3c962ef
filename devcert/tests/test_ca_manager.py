"""Tests for CAManager class."""

import os
import stat
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography import x509

from devcert.lib.ca_manager import CA_KEY_MODE, CAManager
from devcert.lib.config import DevcertConfig
from devcert.lib.errors import FilesystemError
from devcert.lib.models import ProvisionOptions
from devcert.tests.conftest import RecordingTrustStore, RecordingUserInterface, requires_openssl


@pytest.fixture
def ca(devcert_config: DevcertConfig, trust_store: RecordingTrustStore) -> CAManager:
    return CAManager(devcert_config, trust_store)


@pytest.fixture
def installed_ca(ca: CAManager, ui: RecordingUserInterface) -> CAManager:
    ca.install(ui, ProvisionOptions())
    return ca


@requires_openssl
class TestInstall:
    """Tests for install() - root CA generation and trust."""

    def test_install_creates_key_and_certificate(self, installed_ca: CAManager) -> None:
        assert installed_ca.paths.root_ca_key.is_file()
        assert installed_ca.paths.root_ca_cert.is_file()
        assert installed_ca.is_present()

    def test_key_is_owner_read_only(self, installed_ca: CAManager) -> None:
        if os.name != "posix":
            pytest.skip("POSIX permission bits")
        assert stat.S_IMODE(installed_ca.paths.root_ca_key.stat().st_mode) == CA_KEY_MODE

    def test_certificate_is_self_signed_ca(self, installed_ca: CAManager, devcert_config: DevcertConfig) -> None:
        cert = installed_ca.certificate()

        cert.verify_directly_issued_by(cert)
        basic_constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints)
        assert basic_constraints.critical
        assert basic_constraints.value.ca
        assert basic_constraints.value.path_length == 0
        common_name = cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)[0].value
        assert common_name == devcert_config.ca_subject.common_name

    def test_certificate_validity(self, installed_ca: CAManager) -> None:
        cert = installed_ca.certificate()

        validity = cert.not_valid_after_utc - cert.not_valid_before_utc
        assert validity.days == 825

    def test_ledger_seeded(self, installed_ca: CAManager) -> None:
        assert installed_ca.paths.database.read_text() == ""
        assert installed_ca.paths.serial.read_text().strip() == "01"
        assert installed_ca.paths.database_attributes.read_text() == "unique_subject = no\n"
        assert installed_ca.paths.issued_dir.is_dir()

    def test_certificate_trusted(self, installed_ca: CAManager, trust_store: RecordingTrustStore) -> None:
        assert installed_ca.is_installed()
        assert ("add", installed_ca.paths.root_ca_cert) in trust_store.calls
        assert ("add_browser", installed_ca.paths.root_ca_cert) in trust_store.calls

    def test_expiry_in_days(self, installed_ca: CAManager) -> None:
        assert 823 <= installed_ca.expiry_in_days() <= 825


class TestCredentials:
    """Tests for credentials() - scoped access to the CA key."""

    @pytest.fixture
    def fake_ca(self, ca: CAManager) -> CAManager:
        ca.paths.root.mkdir(parents=True)
        ca.paths.root_ca_key.write_text("key")
        ca.paths.root_ca_cert.write_text("cert")
        return ca

    def test_yields_paths(self, fake_ca: CAManager) -> None:
        with fake_ca.credentials() as credentials:
            assert credentials.key_path == fake_ca.paths.root_ca_key
            assert credentials.cert_path == fake_ca.paths.root_ca_cert

    def test_missing_ca_raises(self, ca: CAManager) -> None:
        with pytest.raises(FilesystemError, match="root CA not found"):
            with ca.credentials():
                pass

    def test_with_credentials_returns_result(self, fake_ca: CAManager) -> None:
        assert fake_ca.with_credentials(lambda credentials: credentials.key_path.name) == "rootCA.key"

    def test_mode_restored_after_widening(self, fake_ca: CAManager, monkeypatch: pytest.MonkeyPatch) -> None:
        key_path = fake_ca.paths.root_ca_key
        os.chmod(key_path, 0o200)
        monkeypatch.setattr("devcert.lib.ca_manager.os.access", lambda path, mode: False)

        with fake_ca.credentials():
            assert stat.S_IMODE(key_path.stat().st_mode) & stat.S_IRUSR

        assert stat.S_IMODE(key_path.stat().st_mode) == 0o200

    def test_mode_restored_when_operation_fails(self, fake_ca: CAManager, monkeypatch: pytest.MonkeyPatch) -> None:
        key_path = fake_ca.paths.root_ca_key
        os.chmod(key_path, 0o200)
        monkeypatch.setattr("devcert.lib.ca_manager.os.access", lambda path, mode: False)

        with pytest.raises(RuntimeError):
            with fake_ca.credentials():
                raise RuntimeError("signing failed")

        assert stat.S_IMODE(key_path.stat().st_mode) == 0o200


class TestEnsureReadable:
    """Tests for ensure_readable() - repairing files locked by earlier installs."""

    def test_unreadable_file_repaired_through_platform(
        self,
        ca: CAManager,
        ui: RecordingUserInterface,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        ca.paths.root.mkdir(parents=True)
        ca.paths.root_ca_key.write_text("key")
        os.chmod(ca.paths.root_ca_key, CA_KEY_MODE)
        monkeypatch.setattr("devcert.lib.ca_manager.os.access", lambda path, mode: False)
        ca.platform.grant_owner_access = MagicMock()

        ca.ensure_readable(ui)

        ca.platform.grant_owner_access.assert_called_once_with(ca.paths.root_ca_key, CA_KEY_MODE, ui)

    def test_permissive_key_restricted(self, ca: CAManager, ui: RecordingUserInterface) -> None:
        if os.name != "posix":
            pytest.skip("POSIX permission bits")
        ca.paths.root.mkdir(parents=True)
        ca.paths.root_ca_key.write_text("key")
        os.chmod(ca.paths.root_ca_key, 0o644)

        ca.ensure_readable(ui)

        assert stat.S_IMODE(ca.paths.root_ca_key.stat().st_mode) == CA_KEY_MODE

    def test_nothing_to_do_without_files(self, ca: CAManager, ui: RecordingUserInterface) -> None:
        ca.ensure_readable(ui)


@requires_openssl
class TestHeal:
    """Tests for heal() - restoring trust for an existing CA."""

    def test_trusted_ca_left_alone(self, installed_ca: CAManager, ui: RecordingUserInterface) -> None:
        assert installed_ca.heal(ui, ProvisionOptions()) is False

    def test_untrusted_ca_added_again(
        self,
        installed_ca: CAManager,
        trust_store: RecordingTrustStore,
        ui: RecordingUserInterface,
    ) -> None:
        trust_store.trusted.clear()

        assert installed_ca.heal(ui, ProvisionOptions()) is True
        assert installed_ca.is_installed()

    def test_missing_certificate_raises(self, installed_ca: CAManager, ui: RecordingUserInterface) -> None:
        installed_ca.paths.root_ca_cert.unlink()

        with pytest.raises(FilesystemError, match="is missing"):
            installed_ca.heal(ui, ProvisionOptions())


@requires_openssl
class TestUninstall:
    """Tests for uninstall()."""

    def test_removes_files_and_trust(
        self,
        installed_ca: CAManager,
        trust_store: RecordingTrustStore,
        ui: RecordingUserInterface,
    ) -> None:
        cert_path = installed_ca.paths.root_ca_cert

        installed_ca.uninstall(ui)

        assert ("remove", cert_path) in trust_store.calls
        assert not installed_ca.paths.root_ca_key.exists()
        assert not cert_path.exists()
        assert not installed_ca.paths.ca_dir.exists()
        assert not installed_ca.is_present()
        assert installed_ca.expiry_in_days() == -1

    def test_uninstall_without_ca(self, ca: CAManager, ui: RecordingUserInterface, trust_store: RecordingTrustStore) -> None:
        ca.uninstall(ui)

        assert trust_store.calls == []

    def test_reinstall_after_uninstall(self, installed_ca: CAManager, ui: RecordingUserInterface) -> None:
        first = installed_ca.paths.root_ca_cert.read_bytes()
        installed_ca.uninstall(ui)

        installed_ca.install(ui, ProvisionOptions())

        assert installed_ca.paths.root_ca_cert.read_bytes() != first
        assert installed_ca.is_installed()


class TestCAPaths:
    def test_not_present_initially(self, ca: CAManager, config_root: Path) -> None:
        assert not ca.is_present()
        assert ca.paths.root == config_root
        assert ca.expiry_in_days() == -1
