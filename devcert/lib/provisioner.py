"""Orchestrates CA installation, domain certificate issuance and hosts updates."""

import threading
from collections.abc import Iterable
from pathlib import Path

from .ca_manager import CAManager
from .config import DevcertConfig
from .domain_certificates import DomainCertificateManager
from .errors import DevcertError, FilesystemError, StaleCertificateError
from .logging_config import LOGGER
from .models import ProvisionOptions, ProvisionResult
from .openssl import ensure_openssl_available, expiry_in_days
from .paths import DevcertPaths, normalize_domains, stable_domain_path
from .platforms import TrustStoreInstaller, get_platform
from .user_interface import UserInterface

_locks_guard = threading.Lock()
_ca_locks: dict[Path, threading.Lock] = {}
_domain_locks: dict[tuple[Path, str], threading.Lock] = {}


def _ca_lock(root: Path) -> threading.Lock:
    with _locks_guard:
        return _ca_locks.setdefault(root.resolve(), threading.Lock())


def _domain_lock(root: Path, domain_id: str) -> threading.Lock:
    with _locks_guard:
        return _domain_locks.setdefault((root.resolve(), domain_id), threading.Lock())


class CertificateProvisioner:
    """Provision locally trusted certificates for development domains.

    Locks are per process: two processes provisioning the same domain set
    against one config root at the same moment are not coordinated.
    """

    def __init__(
        self,
        config: DevcertConfig | None = None,
        platform: TrustStoreInstaller | None = None,
    ) -> None:
        """Initialize provisioner.

        Args:
            config: devcert configuration (defaults to DevcertConfig())
            platform: Trust store installer (defaults to the running platform's)
        """
        self.config = config or DevcertConfig()
        self.paths = DevcertPaths(self.config.config_root)
        self._platform = platform
        self.host_tasks: list[threading.Thread] = []

    @property
    def platform(self) -> TrustStoreInstaller:
        """Trust store installer, selected on first use.

        Raises:
            UnsupportedPlatformError: If the running platform has no installer
        """
        if self._platform is None:
            self._platform = get_platform(self.config)
        return self._platform

    def _certificate_authority(self) -> CAManager:
        return CAManager(self.config, self.platform)

    def _domain_certificates(self) -> DomainCertificateManager:
        return DomainCertificateManager(self.config, self._certificate_authority())

    def certificate_for(
        self,
        domains: str | Iterable[str],
        options: ProvisionOptions | None = None,
    ) -> ProvisionResult:
        """Return a certificate for domains signed by the devcert root CA.

        On first use the root CA is generated and added to the trust stores.
        A certificate already cached for the same domain set (in any order)
        is reused. Hosts file entries are added in background threads that
        are never joined, so they may land after this call returns.

        Args:
            domains: One domain or a list of domains
            options: Per-call options (defaults to ProvisionOptions())

        Returns:
            ProvisionResult with key and certificate bytes, plus CA material on request

        Raises:
            InvalidDomainError: Before any file or process work, for bad input
            UnsupportedPlatformError: If the platform has no trust store installer
            MissingDependencyError: If openssl is not installed
            StaleCertificateError: If the cached certificate predates the current CA
        """
        options = options or ProvisionOptions()
        requested = normalize_domains(domains)
        domain_id = stable_domain_path(requested)
        LOGGER.debug(
            "Certificate requested for %s. Skipping certutil install: %s. Skipping hosts file: %s",
            requested,
            options.skip_certutil_install,
            options.skip_hosts_file,
        )

        ui = options.ui or self.config.ui
        platform = self.platform
        ensure_openssl_available()

        ca = CAManager(self.config, platform)
        with _ca_lock(self.paths.root):
            if not ca.is_present():
                LOGGER.debug("Root CA is not installed yet, so it must be our first run. Installing root CA")
                ca.install(ui, options)
            else:
                ca.ensure_readable(ui)
                ca.heal(ui, options)

        certificates = DomainCertificateManager(self.config, ca)
        with _domain_lock(self.paths.root, domain_id):
            if not certificates.exists(requested):
                LOGGER.debug("No cached certificate for %s, generating one", requested)
                certificates.generate(requested)
            elif not certificates.is_signed_by_current_ca(requested):
                raise StaleCertificateError(requested)

        if not options.skip_hosts_file:
            for domain in requested:
                self._spawn_hosts_update(domain, ui)

        LOGGER.debug("Returning domain certificate")
        try:
            result = ProvisionResult(
                key=self.paths.domain_key(domain_id).read_bytes(),
                cert=self.paths.domain_cert(domain_id).read_bytes(),
            )
            if options.get_ca_buffer:
                result.ca = self.paths.root_ca_cert.read_bytes()
        except OSError as e:
            raise FilesystemError(f"cannot read certificate files for {domain_id}: {e}") from e
        if options.get_ca_path:
            result.ca_path = self.paths.root_ca_cert
        return result

    def _spawn_hosts_update(self, domain: str, ui: UserInterface) -> None:
        self.host_tasks = [task for task in self.host_tasks if task.is_alive()]
        task = threading.Thread(
            target=self._update_hosts_file,
            args=(domain, ui),
            name=f"devcert-hosts-{domain}",
            daemon=True,
        )
        task.start()
        self.host_tasks.append(task)

    def _update_hosts_file(self, domain: str, ui: UserInterface) -> None:
        try:
            self.platform.add_domain_to_host_file_if_missing(domain, ui)
        except (DevcertError, OSError) as e:
            LOGGER.warning("Could not add %s to the hosts file: %s", domain, e)

    def has_certificate_for(self, domains: str | Iterable[str]) -> bool:
        return self.paths.domain_cert(stable_domain_path(domains)).exists()

    def configured_domains(self) -> list[str]:
        """Return the domain-set identifiers with cached certificate directories."""
        if not self.paths.domains_dir.is_dir():
            return []
        return sorted(entry.name for entry in self.paths.domains_dir.iterdir() if entry.is_dir())

    def remove_domain(self, domains: str | Iterable[str]) -> None:
        """Revoke and delete the certificate cached for a domain set."""
        requested = normalize_domains(domains)
        domain_id = stable_domain_path(requested)
        ensure_openssl_available()
        with _domain_lock(self.paths.root, domain_id):
            self._domain_certificates().remove(requested)

    def remove_all(self, ui: UserInterface | None = None) -> None:
        """Untrust and delete the root CA and every domain certificate."""
        with _ca_lock(self.paths.root):
            self._certificate_authority().uninstall(ui or self.config.ui)

    def ca_expiry_in_days(self) -> int:
        """Days before the root CA expires, or -1 if it is missing or unreadable."""
        return expiry_in_days(self.paths.root_ca_cert)

    def certificate_expiry_in_days(self, domains: str | Iterable[str]) -> int:
        """Days before a domain certificate expires, or -1 on any error."""
        try:
            domain_id = stable_domain_path(domains)
        except DevcertError:
            return -1
        return expiry_in_days(self.paths.domain_cert(domain_id))

    def location(self) -> Path:
        return self.paths.root
