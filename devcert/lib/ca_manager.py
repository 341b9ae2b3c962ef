"""Root certificate authority lifecycle: creation, custody, trust and removal."""

import os
import shutil
import stat
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from cryptography import x509

from .cert_utils import load_certificate
from .config import DevcertConfig
from .errors import FilesystemError
from .logging_config import LOGGER
from .models import CACredentials, ProvisionOptions
from .openssl import expiry_in_days, generate_key, openssl
from .openssl_configs import ca_self_signing_config
from .paths import DevcertPaths
from .platforms.base import TrustStoreInstaller
from .user_interface import UserInterface

T = TypeVar("T")

CA_KEY_MODE = 0o400
CA_CERT_MODE = 0o644
INITIAL_SERIAL = "01"

_locks_guard = threading.Lock()
_signing_locks: dict[Path, threading.Lock] = {}


def _signing_lock(root: Path) -> threading.Lock:
    """Return the process-wide lock serializing use of one CA's ledger."""
    with _locks_guard:
        return _signing_locks.setdefault(root.resolve(), threading.Lock())


class CAManager:
    """Certificate Authority manager for the devcert root CA.

    The CA key and certificate live at fixed paths under the config root.
    Presence of the key file is the first-run guard callers check before
    calling install().
    """

    def __init__(self, config: DevcertConfig, platform: TrustStoreInstaller) -> None:
        """Initialize CA manager.

        Args:
            config: devcert configuration with key size, validity and subject
            platform: Trust store installer for the running platform
        """
        self.config = config
        self.platform = platform
        self.paths = DevcertPaths(config.config_root)

    def is_present(self) -> bool:
        return self.paths.root_ca_key.exists()

    def certificate(self) -> x509.Certificate:
        return load_certificate(self.paths.root_ca_cert)

    def install(self, ui: UserInterface, options: ProvisionOptions) -> None:
        """Generate the root CA and add it to the trust stores.

        Creates a 2048-bit (configurable) key readable only by its owner and a
        self-signed CA certificate, seeds the OpenSSL ledger, then trusts the
        certificate. Any failure propagates and leaves the files in place; the
        next run detects an untrusted CA and retries trust through heal().

        Raises:
            FilesystemError: If the config root cannot be written
            ExternalToolError: If openssl fails
            TrustStoreError: If the system trust store rejects the CA
        """
        LOGGER.info("Installing root CA in %s", self.paths.root)
        self._discard_previous_authority(ui)

        try:
            for directory in (self.paths.root, self.paths.ca_dir, self.paths.issued_dir, self.paths.domains_dir):
                directory.mkdir(parents=True, exist_ok=True)
            self.seed_ledger()
        except OSError as e:
            raise FilesystemError(f"cannot prepare {self.paths.root}: {e}") from e

        generate_key(self.paths.root_ca_key, self.config.key_size, mode=CA_KEY_MODE)

        LOGGER.debug("Self-signing root CA certificate %s", self.paths.root_ca_cert)
        with ca_self_signing_config(self.config) as config_path:
            openssl(
                [
                    "req",
                    "-new",
                    "-x509",
                    "-config",
                    str(config_path),
                    "-key",
                    str(self.paths.root_ca_key),
                    "-out",
                    str(self.paths.root_ca_cert),
                    "-days",
                    str(self.config.ca_validity_days),
                ]
            )
        os.chmod(self.paths.root_ca_cert, CA_CERT_MODE)

        self.platform.add_to_trust_stores(self.paths.root_ca_cert, ui, options)
        LOGGER.info("Root CA installed")

    def seed_ledger(self) -> None:
        """Reset the OpenSSL CA database, serial counter and attributes."""
        self.paths.database.write_text("")
        self.paths.serial.write_text(INITIAL_SERIAL + "\n")
        self.paths.database_attributes.write_text("unique_subject = no\n")

    def _discard_previous_authority(self, ui: UserInterface) -> None:
        """Remove trust entries and cached certificates left by an earlier CA."""
        if self.paths.root_ca_cert.exists():
            LOGGER.info("Removing trust for the previous root CA %s", self.paths.root_ca_cert)
            self.platform.remove_certificates(self.paths.root_ca_cert, ui)
        try:
            self.paths.root_ca_cert.unlink(missing_ok=True)
            if self.paths.domains_dir.exists():
                LOGGER.info("Discarding domain certificates signed by the previous root CA")
                shutil.rmtree(self.paths.domains_dir)
        except OSError as e:
            raise FilesystemError(f"cannot discard previous root CA files: {e}") from e

    @contextmanager
    def credentials(self) -> Iterator[CACredentials]:
        """Hand out the CA key and certificate paths for one signing operation.

        Signing operations on the same CA are serialized. If the key is not
        readable by the current user, owner read permission is added for the
        duration of the block and the previous mode is restored on every exit
        path.

        Raises:
            FilesystemError: If the CA is missing or its key cannot be made readable
        """
        key_path = self.paths.root_ca_key
        cert_path = self.paths.root_ca_cert
        if not key_path.is_file() or not cert_path.is_file():
            raise FilesystemError(f"root CA not found in {self.paths.root}")

        with _signing_lock(self.paths.root):
            restore_mode = self._widen_key_access(key_path)
            try:
                yield CACredentials(key_path=key_path, cert_path=cert_path)
            finally:
                if restore_mode is not None:
                    os.chmod(key_path, restore_mode)
                    LOGGER.debug("Restored mode %o on %s", restore_mode, key_path)

    def with_credentials(self, operation: Callable[[CACredentials], T]) -> T:
        """Run operation with scoped CA credentials and return its result."""
        with self.credentials() as credentials:
            return operation(credentials)

    @staticmethod
    def _widen_key_access(key_path: Path) -> int | None:
        """Add owner read permission if missing; return the mode to restore."""
        if os.access(key_path, os.R_OK):
            return None

        original_mode = stat.S_IMODE(key_path.stat().st_mode)
        try:
            os.chmod(key_path, original_mode | stat.S_IRUSR)
        except OSError as e:
            raise FilesystemError(
                f"root CA key {key_path} is not readable; run ensure_readable() to repair it"
            ) from e
        LOGGER.debug("Temporarily added owner read permission to %s", key_path)
        return original_mode

    def ensure_readable(self, ui: UserInterface) -> None:
        """Repair CA files left unreadable or too permissive by an earlier install.

        The key is never regenerated: ownership and mode are restored in place.
        """
        for path, mode in ((self.paths.root_ca_key, CA_KEY_MODE), (self.paths.root_ca_cert, CA_CERT_MODE)):
            if not path.exists():
                continue
            if not os.access(path, os.R_OK):
                LOGGER.warning("%s is not readable, probably locked by an earlier devcert version. Repairing", path)
                self.platform.grant_owner_access(path, mode, ui)

        key_path = self.paths.root_ca_key
        if os.name == "posix" and key_path.exists() and stat.S_IMODE(key_path.stat().st_mode) & 0o077:
            LOGGER.warning("Root CA key %s is accessible to other users, restricting it", key_path)
            try:
                os.chmod(key_path, CA_KEY_MODE)
            except PermissionError:
                self.platform.grant_owner_access(key_path, CA_KEY_MODE, ui)

    def is_installed(self) -> bool:
        """Check whether the system trust store currently trusts the CA."""
        return self.paths.root_ca_cert.is_file() and self.platform.is_cert_installed(self.paths.root_ca_cert)

    def heal(self, ui: UserInterface, options: ProvisionOptions) -> bool:
        """Re-add an existing CA to the trust stores if a check shows it missing.

        Returns:
            True if trust had to be restored

        Raises:
            FilesystemError: If the key exists without its certificate
        """
        if not self.paths.root_ca_cert.is_file():
            raise FilesystemError(
                f"root CA key exists but {self.paths.root_ca_cert} is missing; run remove_all() to start over"
            )
        if self.platform.is_cert_installed(self.paths.root_ca_cert):
            return False

        LOGGER.warning("Root CA is not trusted by the system, installing it into the trust stores again")
        self.platform.add_to_trust_stores(self.paths.root_ca_cert, ui, options)
        return True

    def uninstall(self, ui: UserInterface) -> None:
        """Untrust the CA and delete it with every domain certificate it signed."""
        if self.paths.root_ca_cert.exists():
            self.platform.remove_certificates(self.paths.root_ca_cert, ui)
        else:
            LOGGER.debug("No root CA certificate, nothing to remove from trust stores")

        try:
            if self.paths.root_ca_key.exists():
                # read-only files cannot be deleted on Windows
                os.chmod(self.paths.root_ca_key, 0o600)
            for directory in (self.paths.domains_dir, self.paths.ca_dir):
                if directory.exists():
                    shutil.rmtree(directory)
            self.paths.root_ca_key.unlink(missing_ok=True)
            self.paths.root_ca_cert.unlink(missing_ok=True)
        except OSError as e:
            raise FilesystemError(f"cannot delete devcert files in {self.paths.root}: {e}") from e
        LOGGER.info("Root CA and domain certificates removed from %s", self.paths.root)

    def expiry_in_days(self) -> int:
        return expiry_in_days(self.paths.root_ca_cert)
