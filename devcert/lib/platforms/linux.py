"""Linux trust store installer (distribution CA bundles plus NSS databases)."""

from dataclasses import dataclass
from pathlib import Path

from ..cert_utils import same_certificate
from ..errors import ExternalToolError, MissingDependencyError, TrustStoreError
from ..logging_config import LOGGER
from ..user_interface import UserInterface
from .base import TrustStoreInstaller


@dataclass(frozen=True)
class SystemCABundle:
    """A distribution's anchor directory and the command that rebuilds its bundle."""

    tool: str
    anchor_dir: Path
    suffix: str
    refresh_command: tuple[str, ...]


SYSTEM_CA_BUNDLES = (
    # Debian, Ubuntu
    SystemCABundle(
        tool="update-ca-certificates",
        anchor_dir=Path("/usr/local/share/ca-certificates"),
        suffix=".crt",
        refresh_command=("update-ca-certificates",),
    ),
    # Fedora, RHEL, CentOS
    SystemCABundle(
        tool="update-ca-trust",
        anchor_dir=Path("/etc/pki/ca-trust/source/anchors"),
        suffix=".pem",
        refresh_command=("update-ca-trust", "extract"),
    ),
    # Arch
    SystemCABundle(
        tool="trust",
        anchor_dir=Path("/etc/ca-certificates/trust-source/anchors"),
        suffix=".crt",
        refresh_command=("trust", "extract-compat"),
    ),
)

# package manager -> command installing NSS certutil
CERTUTIL_PACKAGES = (
    ("apt-get", ("apt-get", "install", "-y", "libnss3-tools")),
    ("dnf", ("dnf", "install", "-y", "nss-tools")),
    ("yum", ("yum", "install", "-y", "nss-tools")),
    ("pacman", ("pacman", "-S", "--noconfirm", "nss")),
    ("zypper", ("zypper", "--non-interactive", "install", "mozilla-nss-tools")),
)


class LinuxTrustStore(TrustStoreInstaller):
    """Trust store installer for Linux distributions."""

    platform_tag = "linux"
    default_hosts_file = Path("/etc/hosts")
    browser_label = "Firefox/Chrome"
    nss_profile_globs = (
        ".mozilla/firefox/*",
        "snap/firefox/common/.mozilla/firefox/*",
        ".pki/nssdb",
        "snap/chromium/current/.pki/nssdb",
    )

    def system_ca_bundle(self) -> SystemCABundle:
        """Return the CA bundle layout of the running distribution.

        Raises:
            MissingDependencyError: If no known CA bundle tool is installed
        """
        for bundle in SYSTEM_CA_BUNDLES:
            if self.command_exists(bundle.tool):
                return bundle
        raise MissingDependencyError(
            "update-ca-certificates",
            "install ca-certificates (or p11-kit) so the system trust store can be updated",
        )

    def anchor_path(self, bundle: SystemCABundle) -> Path:
        return bundle.anchor_dir / f"{self.nickname}{bundle.suffix}"

    def add_to_system_trust_store(self, ca_cert_path: Path, ui: UserInterface) -> None:
        bundle = self.system_ca_bundle()
        anchor = self.anchor_path(bundle)
        self.confirm(ui, f"add the devcert root CA to the system trust store ({anchor})")

        LOGGER.debug("Copying root CA to %s and running %s", anchor, bundle.tool)
        try:
            self.run_privileged(["mkdir", "-p", str(bundle.anchor_dir)])
            self.run_privileged(["cp", str(ca_cert_path), str(anchor)])
            self.run_privileged(list(bundle.refresh_command))
        except ExternalToolError as e:
            raise TrustStoreError(f"failed to add root CA to the system trust store: {e}") from e

    def add_to_browser_trust_stores(
        self,
        ca_cert_path: Path,
        ui: UserInterface,
        skip_certutil_install: bool = False,
    ) -> None:
        databases = self.find_nss_databases()
        if not databases:
            LOGGER.debug("No Firefox or Chrome NSS databases found, skipping browser trust")
            return

        certutil = self.certutil_path()
        if certutil is None:
            if skip_certutil_install:
                raise MissingDependencyError(
                    "certutil", "skipping browser trust stores because certutil installation was skipped"
                )
            certutil = self.install_certutil(ui)

        self.confirm(ui, f"add the devcert root CA to {len(databases)} browser certificate database(s)")
        self.add_certificate_to_nss_databases(databases, ca_cert_path, certutil)

    def install_certutil(self, ui: UserInterface) -> str:
        """Install NSS certutil with the distribution package manager.

        Raises:
            MissingDependencyError: If no supported package manager exists
        """
        for manager, command in CERTUTIL_PACKAGES:
            if self.command_exists(manager):
                self.confirm(ui, f"install NSS certutil with {manager}")
                self.run_privileged(list(command))
                certutil = self.certutil_path()
                if certutil:
                    return certutil
                break
        raise MissingDependencyError("certutil", "install the NSS tools package (libnss3-tools or nss-tools)")

    def is_cert_installed(self, ca_cert_path: Path) -> bool:
        for bundle in SYSTEM_CA_BUNDLES:
            anchor = self.anchor_path(bundle)
            if anchor.is_file() and same_certificate(anchor, ca_cert_path):
                return True
        return False

    def remove_certificates(self, ca_cert_path: Path, ui: UserInterface) -> None:
        installed = [
            bundle
            for bundle in SYSTEM_CA_BUNDLES
            if self.anchor_path(bundle).exists() and self.command_exists(bundle.tool)
        ]
        if installed:
            self.confirm(ui, "remove the devcert root CA from the system trust store")
        for bundle in installed:
            try:
                self.run_privileged(["rm", "-f", str(self.anchor_path(bundle))])
                self.run_privileged(list(bundle.refresh_command))
            except ExternalToolError as e:
                raise TrustStoreError(f"failed to remove root CA from the system trust store: {e}") from e
        if not installed:
            LOGGER.debug("Root CA not present in the system trust store")

        certutil = self.certutil_path()
        if certutil:
            self.remove_certificate_from_nss_databases(certutil)
