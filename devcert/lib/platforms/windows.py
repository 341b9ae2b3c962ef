"""Windows trust store installer (current user Root certificate store)."""

import os
from pathlib import Path

from ..cert_utils import certificate_fingerprint, load_certificate
from ..errors import ExternalToolError, FilesystemError, MissingDependencyError, TrustStoreError
from ..logging_config import LOGGER
from ..user_interface import UserInterface
from .base import TrustStoreInstaller


def _default_hosts_file() -> Path:
    system_root = os.environ.get("SystemRoot", r"C:\Windows")
    return Path(system_root) / "System32" / "drivers" / "etc" / "hosts"


class WindowsTrustStore(TrustStoreInstaller):
    """Trust store installer for Windows.

    Uses the Windows certutil (not the NSS tool of the same name), so Firefox
    profiles cannot be updated and the user is asked to import the CA.
    """

    platform_tag = "win32"
    default_hosts_file = _default_hosts_file()
    nss_profile_globs = ("AppData/Roaming/Mozilla/Firefox/Profiles/*",)

    def add_to_system_trust_store(self, ca_cert_path: Path, ui: UserInterface) -> None:
        self.confirm(ui, "add the devcert root CA to the Windows certificate store")
        try:
            self.run(["certutil", "-addstore", "-user", "root", str(ca_cert_path)])
        except ExternalToolError as e:
            raise TrustStoreError(f"failed to add root CA to the Windows certificate store: {e}") from e

    def add_to_browser_trust_stores(
        self,
        ca_cert_path: Path,
        ui: UserInterface,
        skip_certutil_install: bool = False,
    ) -> None:
        profiles = [path for pattern in self.nss_profile_globs for path in self.home.glob(pattern)]
        if profiles:
            ui.warn_manual_browser_install(self.browser_label, ca_cert_path)

    def thumbprint(self, ca_cert_path: Path) -> str:
        return certificate_fingerprint(load_certificate(ca_cert_path))

    def is_cert_installed(self, ca_cert_path: Path) -> bool:
        try:
            thumbprint = self.thumbprint(ca_cert_path)
            result = self.run(["certutil", "-user", "-verifystore", "root", thumbprint], check=False)
        except (ValueError, FilesystemError, MissingDependencyError) as e:
            LOGGER.debug("Certificate store lookup failed: %s", e)
            return False
        return result.returncode == 0

    def remove_certificates(self, ca_cert_path: Path, ui: UserInterface) -> None:
        if not (ca_cert_path.is_file() and self.is_cert_installed(ca_cert_path)):
            LOGGER.debug("Root CA not present in the Windows certificate store")
            return
        self.confirm(ui, "remove the devcert root CA from the Windows certificate store")
        try:
            self.run(["certutil", "-delstore", "-user", "root", self.thumbprint(ca_cert_path)])
        except ExternalToolError as e:
            raise TrustStoreError(f"failed to remove root CA from the Windows certificate store: {e}") from e

    def append_hosts_entry_privileged(self, entry: str) -> None:
        try:
            with self.hosts_file.open("a", encoding="utf-8") as handle:
                handle.write(entry)
        except PermissionError as e:
            raise TrustStoreError(
                f"administrator rights are required to update {self.hosts_file}"
            ) from e

    def grant_owner_access(self, path: Path, mode: int, ui: UserInterface) -> None:
        self.confirm(ui, f"restore access to {path}")
        user = os.environ.get("USERNAME", "")
        self.run(["icacls", str(path), "/grant", f"{user}:F"])
        os.chmod(path, mode)

    def needs_sudo(self) -> bool:
        return False
