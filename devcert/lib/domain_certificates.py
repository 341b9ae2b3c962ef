"""Domain certificate issuance, caching and revocation."""

import shutil

from .ca_manager import CAManager
from .cert_utils import get_certificate_serial_hex, is_issued_by, load_certificate
from .config import DevcertConfig
from .errors import ExternalToolError, FilesystemError
from .logging_config import LOGGER
from .models import CACredentials
from .openssl import expiry_in_days, generate_key, openssl
from .openssl_configs import domain_certificate_config, domain_signing_request_config
from .paths import DevcertPaths, stable_domain_path

DOMAIN_KEY_MODE = 0o600


class DomainCertificateManager:
    """Issues leaf certificates for domain sets, signed by the devcert root CA.

    Certificates are cached under domains/<domain-set-id>/ and reused on
    later requests. Callers check exists() before generate().
    """

    def __init__(self, config: DevcertConfig, ca: CAManager) -> None:
        """Initialize domain certificate manager.

        Args:
            config: devcert configuration with key size and leaf validity
            ca: Root CA providing scoped signing credentials
        """
        self.config = config
        self.ca = ca
        self.paths = DevcertPaths(config.config_root)

    def exists(self, domains: list[str]) -> bool:
        return self.paths.domain_cert(stable_domain_path(domains)).exists()

    def generate(self, domains: list[str]) -> None:
        """Generate key, CSR and CA-signed certificate for a domain set.

        Args:
            domains: Validated domain names; all become subject alternative names

        Raises:
            FilesystemError: If the domain directory cannot be created
            ExternalToolError: If any openssl step fails
        """
        domain_id = stable_domain_path(domains)
        try:
            self.paths.for_domain(domain_id).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"cannot create certificate directory for {domain_id}: {e}") from e

        key_path = self.paths.domain_key(domain_id)
        csr_path = self.paths.domain_csr(domain_id)
        cert_path = self.paths.domain_cert(domain_id)

        LOGGER.debug("Generating private key for %s", domains)
        generate_key(key_path, self.config.key_size, mode=DOMAIN_KEY_MODE)

        LOGGER.debug("Generating certificate signing request for %s", domains)
        with domain_signing_request_config(domains, self.config.key_size) as config_path:
            openssl(["req", "-new", "-config", str(config_path), "-key", str(key_path), "-out", str(csr_path)])

        LOGGER.debug("Generating certificate for %s from signing request and signing with root CA", domains)
        with self.ca.credentials() as credentials:
            with domain_certificate_config(domains, self.paths, self.config.domain_validity_days) as config_path:
                openssl(
                    [
                        "ca",
                        "-config",
                        str(config_path),
                        "-in",
                        str(csr_path),
                        "-out",
                        str(cert_path),
                        "-keyfile",
                        str(credentials.key_path),
                        "-cert",
                        str(credentials.cert_path),
                        "-days",
                        str(self.config.domain_validity_days),
                        "-notext",
                        "-batch",
                    ]
                )
        LOGGER.info("Issued certificate for %s", ", ".join(domains))

    def revoke(self, domains: list[str]) -> None:
        """Mark a domain set's certificate revoked in the CA ledger.

        Must run before the domain directory is deleted. A certificate the
        ledger already lists as revoked is left as it is, so a removal that
        failed after revoking can be retried.

        Raises:
            ExternalToolError: If openssl refuses the revocation
        """
        cert_path = self.paths.domain_cert(stable_domain_path(domains))

        def _revoke(credentials: CACredentials) -> None:
            with domain_certificate_config(domains, self.paths, self.config.domain_validity_days) as config_path:
                openssl(
                    [
                        "ca",
                        "-config",
                        str(config_path),
                        "-revoke",
                        str(cert_path),
                        "-keyfile",
                        str(credentials.key_path),
                        "-cert",
                        str(credentials.cert_path),
                    ]
                )

        try:
            self.ca.with_credentials(_revoke)
        except ExternalToolError as e:
            if "already revoked" not in e.stderr.lower():
                raise
            LOGGER.debug("Certificate for %s was already revoked", domains)
            return
        LOGGER.info("Revoked certificate %s for %s", get_certificate_serial_hex(load_certificate(cert_path)), domains)

    def remove(self, domains: list[str]) -> None:
        """Revoke (when the CA still exists) and delete a domain set's certificate."""
        domain_id = stable_domain_path(domains)
        if not self.exists(domains):
            LOGGER.debug("No cached certificate for %s", domains)
        elif not self.ca.is_present():
            LOGGER.warning("Root CA missing, deleting certificate for %s without revoking it", domains)
        elif not self.is_signed_by_current_ca(domains):
            LOGGER.warning(
                "Certificate for %s was not issued by the current root CA, deleting it without revoking it", domains
            )
        else:
            self.revoke(domains)

        domain_dir = self.paths.for_domain(domain_id)
        try:
            if domain_dir.exists():
                shutil.rmtree(domain_dir)
        except OSError as e:
            raise FilesystemError(f"cannot delete {domain_dir}: {e}") from e

    def is_signed_by_current_ca(self, domains: list[str]) -> bool:
        """Return True if the cached certificate verifies against the current root CA."""
        cert_path = self.paths.domain_cert(stable_domain_path(domains))
        try:
            return is_issued_by(load_certificate(cert_path), self.ca.certificate())
        except (FilesystemError, ValueError) as e:
            LOGGER.debug("Cannot verify %s against the root CA: %s", cert_path, e)
            return False

    def expiry_in_days(self, domains: list[str]) -> int:
        return expiry_in_days(self.paths.domain_cert(stable_domain_path(domains)))
