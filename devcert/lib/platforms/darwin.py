"""macOS trust store installer (System keychain plus Firefox NSS profiles)."""

from pathlib import Path

from ..cert_utils import certificate_fingerprint, load_certificate
from ..errors import ExternalToolError, FilesystemError, MissingDependencyError, TrustStoreError
from ..logging_config import LOGGER
from ..user_interface import UserInterface
from .base import NSS_CERTUTIL, TrustStoreInstaller

SYSTEM_KEYCHAIN = "/Library/Keychains/System.keychain"

# Homebrew installs nss keg-only on some setups
BREW_CERTUTIL_PATHS = (
    Path("/opt/homebrew/opt/nss/bin/certutil"),
    Path("/usr/local/opt/nss/bin/certutil"),
)


class DarwinTrustStore(TrustStoreInstaller):
    """Trust store installer for macOS."""

    platform_tag = "darwin"
    default_hosts_file = Path("/etc/hosts")
    nss_profile_globs = ("Library/Application Support/Firefox/Profiles/*",)

    def add_to_system_trust_store(self, ca_cert_path: Path, ui: UserInterface) -> None:
        self.confirm(ui, "add the devcert root CA to the System keychain")
        LOGGER.debug("Adding root CA to %s", SYSTEM_KEYCHAIN)
        try:
            self.run_privileged(
                [
                    "security",
                    "add-trusted-cert",
                    "-d",
                    "-r",
                    "trustRoot",
                    "-k",
                    SYSTEM_KEYCHAIN,
                    "-p",
                    "ssl",
                    "-p",
                    "basic",
                    str(ca_cert_path),
                ]
            )
        except ExternalToolError as e:
            raise TrustStoreError(f"failed to add root CA to the System keychain: {e}") from e

    def add_to_browser_trust_stores(
        self,
        ca_cert_path: Path,
        ui: UserInterface,
        skip_certutil_install: bool = False,
    ) -> None:
        databases = self.find_nss_databases()
        if not databases:
            LOGGER.debug("No Firefox profiles found, skipping browser trust")
            return

        certutil = self.certutil_path()
        if certutil is None:
            if skip_certutil_install:
                raise MissingDependencyError(
                    "certutil", "skipping Firefox because certutil installation was skipped"
                )
            if not self.command_exists("brew"):
                raise MissingDependencyError("certutil", "install Homebrew and run `brew install nss`")
            self.confirm(ui, "install NSS certutil with Homebrew")
            # brew refuses to run as root
            self.run(["brew", "install", "nss"])
            certutil = self.certutil_path()
            if certutil is None:
                raise MissingDependencyError("certutil", "`brew install nss` did not provide certutil")

        self.confirm(ui, f"add the devcert root CA to {len(databases)} Firefox profile(s)")
        self.add_certificate_to_nss_databases(databases, ca_cert_path, certutil)

    def certutil_path(self) -> str | None:
        if self.command_exists(NSS_CERTUTIL):
            return NSS_CERTUTIL
        for candidate in BREW_CERTUTIL_PATHS:
            if candidate.is_file():
                return str(candidate)
        return None

    def keychain_fingerprint(self, ca_cert_path: Path) -> str:
        return certificate_fingerprint(load_certificate(ca_cert_path))

    def is_cert_installed(self, ca_cert_path: Path) -> bool:
        try:
            fingerprint = self.keychain_fingerprint(ca_cert_path)
            result = self.run(
                ["security", "find-certificate", "-a", "-Z", "-c", self.nickname, SYSTEM_KEYCHAIN],
                check=False,
            )
        except (ValueError, FilesystemError, MissingDependencyError) as e:
            LOGGER.debug("Keychain lookup failed: %s", e)
            return False
        return result.returncode == 0 and fingerprint in result.stdout.decode("utf-8", errors="replace")

    def remove_certificates(self, ca_cert_path: Path, ui: UserInterface) -> None:
        if ca_cert_path.is_file() and self.is_cert_installed(ca_cert_path):
            fingerprint = self.keychain_fingerprint(ca_cert_path)
            self.confirm(ui, "remove the devcert root CA from the System keychain")
            try:
                self.run_privileged(["security", "remove-trusted-cert", "-d", str(ca_cert_path)])
                self.run_privileged(["security", "delete-certificate", "-Z", fingerprint, SYSTEM_KEYCHAIN])
            except ExternalToolError as e:
                if "could not be found" not in e.stderr.lower():
                    raise TrustStoreError(f"failed to remove root CA from the System keychain: {e}") from e
                LOGGER.debug("Root CA already removed from the System keychain")
        else:
            LOGGER.debug("Root CA not present in the System keychain")

        certutil = self.certutil_path()
        if certutil:
            self.remove_certificate_from_nss_databases(certutil)
