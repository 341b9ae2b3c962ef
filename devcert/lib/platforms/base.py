"""Trust store installer interface and helpers shared by the platform variants."""

import os
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

from ..config import DevcertConfig
from ..errors import (
    ConsentDeniedError,
    ExternalToolError,
    MissingDependencyError,
    TrustStoreError,
)
from ..logging_config import LOGGER
from ..models import ProvisionOptions
from ..process import command_exists, run_command
from ..user_interface import UserInterface

LOOPBACK_ADDRESS = "127.0.0.1"
NSS_CERTUTIL = "certutil"

# one prompt at a time across hosts file threads
_confirmation_lock = threading.Lock()


def hosts_file_has_domain(content: str, domain: str) -> bool:
    """Return True if any hosts entry maps a host name equal to domain."""
    wanted = domain.lower()
    for line in content.splitlines():
        fields = line.split("#", 1)[0].split()
        if len(fields) >= 2 and wanted in (name.lower() for name in fields[1:]):
            return True
    return False


def nss_database_reference(directory: Path) -> str | None:
    """Return the certutil -d argument for an NSS database directory.

    cert9.db marks the SQLite format (sql:), cert8.db the legacy Berkeley DB
    format (dbm:). Directories with neither are not databases.
    """
    if (directory / "cert9.db").is_file():
        return f"sql:{directory}"
    if (directory / "cert8.db").is_file():
        return f"dbm:{directory}"
    return None


class TrustStoreInstaller(ABC):
    """Adds the devcert root CA to a platform's system and browser trust stores.

    One concrete variant exists per supported platform tag. Every privileged
    change goes through confirm() first, which asks the UserInterface unless
    DevcertConfig.skip_confirmation is set.
    """

    platform_tag: ClassVar[str]
    default_hosts_file: ClassVar[Path]
    browser_label: ClassVar[str] = "Firefox"
    nss_profile_globs: ClassVar[tuple[str, ...]] = ()

    def __init__(self, config: DevcertConfig, home: Path | None = None) -> None:
        """Initialize installer.

        Args:
            config: devcert configuration (nickname, hosts file, confirmation policy)
            home: Home directory searched for browser profiles (defaults to Path.home())
        """
        self.config = config
        self.home = home or Path.home()

    @classmethod
    def is_platform_supported(cls) -> bool:
        return sys.platform == cls.platform_tag

    @property
    def nickname(self) -> str:
        return self.config.ca_nickname

    @property
    def hosts_file(self) -> Path:
        return self.config.hosts_file or self.default_hosts_file

    @abstractmethod
    def add_to_system_trust_store(self, ca_cert_path: Path, ui: UserInterface) -> None:
        """Trust the CA system wide. Re-adding a trusted certificate is harmless.

        Raises:
            TrustStoreError: If the OS trust store rejects the certificate
        """

    @abstractmethod
    def add_to_browser_trust_stores(
        self,
        ca_cert_path: Path,
        ui: UserInterface,
        skip_certutil_install: bool = False,
    ) -> None:
        """Trust the CA in browsers that keep their own NSS databases."""

    @abstractmethod
    def is_cert_installed(self, ca_cert_path: Path) -> bool:
        """Look up the CA certificate in the system trust store."""

    @abstractmethod
    def remove_certificates(self, ca_cert_path: Path, ui: UserInterface) -> None:
        """Remove the CA from every store it may have been added to.

        Stores that no longer contain the certificate are skipped.
        """

    def grant_owner_access(self, path: Path, mode: int, ui: UserInterface) -> None:
        """Give the current user ownership of path and set its permission bits."""
        self.confirm(ui, f"restore ownership of {path}")
        self.run_privileged(["chown", f"{os.getuid()}:{os.getgid()}", str(path)])
        self.run_privileged(["chmod", f"{mode:o}", str(path)])

    def add_to_trust_stores(
        self,
        ca_cert_path: Path,
        ui: UserInterface,
        options: ProvisionOptions,
    ) -> None:
        """Add the CA to the system store (required) and browser stores (optional).

        Raises:
            TrustStoreError: If the system store fails, or a browser store fails
                while options.require_browser_trust is set
        """
        self.add_to_system_trust_store(ca_cert_path, ui)
        try:
            self.add_to_browser_trust_stores(
                ca_cert_path, ui, skip_certutil_install=options.skip_certutil_install
            )
        except (TrustStoreError, ExternalToolError, MissingDependencyError) as e:
            if options.require_browser_trust:
                raise TrustStoreError(f"{self.browser_label} trust store update failed: {e}") from e
            ui.warn_browser_trust_skipped(self.browser_label, str(e))

    def add_domain_to_host_file_if_missing(self, domain: str, ui: UserInterface) -> None:
        """Map domain to the loopback address unless the hosts file already does.

        Privileges are requested only when an entry has to be written.
        """
        hosts_file = self.hosts_file
        try:
            content = hosts_file.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            content = ""

        if hosts_file_has_domain(content, domain):
            LOGGER.debug("%s already present in %s", domain, hosts_file)
            return

        entry = f"{LOOPBACK_ADDRESS} {domain}\n"
        if content and not content.endswith("\n"):
            entry = "\n" + entry

        if hosts_file.exists() and os.access(hosts_file, os.W_OK):
            with hosts_file.open("a", encoding="utf-8") as handle:
                handle.write(entry)
        else:
            self.confirm(ui, f"add {domain} to {hosts_file}")
            self.append_hosts_entry_privileged(entry)
        LOGGER.info("Added %s to %s", domain, hosts_file)

    def append_hosts_entry_privileged(self, entry: str) -> None:
        self.run_privileged(["tee", "-a", str(self.hosts_file)], input=entry.encode("utf-8"))

    def confirm(self, ui: UserInterface, description: str) -> None:
        """Pass a privileged action through the confirmation gate.

        Raises:
            ConsentDeniedError: If the user declines
        """
        if self.config.skip_confirmation:
            return
        with _confirmation_lock:
            approved = ui.confirm_privileged_action(description)
        if not approved:
            raise ConsentDeniedError(f"permission to {description} was declined")

    def command_exists(self, name: str) -> bool:
        return command_exists(name)

    def needs_sudo(self) -> bool:
        return hasattr(os, "geteuid") and os.geteuid() != 0

    def run(
        self,
        args: list[str],
        input: bytes | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[bytes]:
        return run_command(args, input=input, check=check)

    def run_privileged(
        self,
        args: list[str],
        input: bytes | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[bytes]:
        """Run a command as root, through sudo when not already root."""
        if self.needs_sudo():
            args = ["sudo", *args]
        return self.run(args, input=input, check=check)

    def find_nss_databases(self) -> list[str]:
        """Return certutil -d references for every browser profile database."""
        databases: list[str] = []
        for pattern in self.nss_profile_globs:
            for directory in sorted(self.home.glob(pattern)):
                reference = nss_database_reference(directory)
                if reference:
                    databases.append(reference)
        return databases

    def certutil_path(self) -> str | None:
        return NSS_CERTUTIL if self.command_exists(NSS_CERTUTIL) else None

    def add_certificate_to_nss_databases(
        self,
        databases: list[str],
        ca_cert_path: Path,
        certutil: str,
    ) -> None:
        for database in databases:
            LOGGER.debug("Adding root CA to NSS database %s", database)
            self.run(
                [
                    certutil,
                    "-A",
                    "-d",
                    database,
                    "-t",
                    "C,,",
                    "-i",
                    str(ca_cert_path),
                    "-n",
                    self.nickname,
                ]
            )

    def remove_certificate_from_nss_databases(self, certutil: str) -> None:
        """Delete the CA from every NSS database, ignoring databases without it."""
        for database in self.find_nss_databases():
            if not self.nss_database_has_certificate(database, certutil):
                LOGGER.debug("Root CA not present in NSS database %s", database)
                continue
            try:
                self.run([certutil, "-D", "-d", database, "-n", self.nickname])
            except ExternalToolError as e:
                LOGGER.warning("Failed to remove root CA from NSS database %s: %s", database, e)

    def nss_database_has_certificate(self, database: str, certutil: str) -> bool:
        result = self.run([certutil, "-L", "-d", database, "-n", self.nickname], check=False)
        return result.returncode == 0
