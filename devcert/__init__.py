"""Locally trusted TLS certificates for development.

Request a certificate with certificate_for(); on first use devcert creates a
root certificate authority and adds it to the system and browser trust stores.
"""

from collections.abc import Iterable
from pathlib import Path

from devcert.lib.config import DevcertConfig, DistinguishedName, default_config_root
from devcert.lib.errors import (
    ConsentDeniedError,
    DevcertError,
    ExternalToolError,
    FilesystemError,
    InvalidDomainError,
    MissingDependencyError,
    StaleCertificateError,
    TrustStoreError,
    UnsupportedPlatformError,
)
from devcert.lib.models import ProvisionOptions, ProvisionResult
from devcert.lib.provisioner import CertificateProvisioner
from devcert.lib.user_interface import (
    ConsoleUserInterface,
    NonInteractiveUserInterface,
    UserInterface,
)


def certificate_for(
    domains: str | Iterable[str],
    options: ProvisionOptions | None = None,
    config: DevcertConfig | None = None,
) -> ProvisionResult:
    """Return a key and certificate for domains, trusted by this machine.

    A certificate generated earlier for the same domains is reused. Pass
    ProvisionOptions(get_ca_buffer=True) or get_ca_path=True to also receive
    the root CA certificate.
    """
    return CertificateProvisioner(config).certificate_for(domains, options)


def has_certificate_for(domains: str | Iterable[str], config: DevcertConfig | None = None) -> bool:
    return CertificateProvisioner(config).has_certificate_for(domains)


def configured_domains(config: DevcertConfig | None = None) -> list[str]:
    return CertificateProvisioner(config).configured_domains()


def remove_domain(domains: str | Iterable[str], config: DevcertConfig | None = None) -> None:
    CertificateProvisioner(config).remove_domain(domains)


def remove_all(config: DevcertConfig | None = None) -> None:
    CertificateProvisioner(config).remove_all()


def ca_expiry_in_days(config: DevcertConfig | None = None) -> int:
    return CertificateProvisioner(config).ca_expiry_in_days()


def certificate_expiry_in_days(domains: str | Iterable[str], config: DevcertConfig | None = None) -> int:
    return CertificateProvisioner(config).certificate_expiry_in_days(domains)


def location(config: DevcertConfig | None = None) -> Path:
    return CertificateProvisioner(config).location()


__all__ = [
    "CertificateProvisioner",
    "ConsentDeniedError",
    "ConsoleUserInterface",
    "DevcertConfig",
    "DevcertError",
    "DistinguishedName",
    "ExternalToolError",
    "FilesystemError",
    "InvalidDomainError",
    "MissingDependencyError",
    "NonInteractiveUserInterface",
    "ProvisionOptions",
    "ProvisionResult",
    "StaleCertificateError",
    "TrustStoreError",
    "UnsupportedPlatformError",
    "UserInterface",
    "ca_expiry_in_days",
    "certificate_expiry_in_days",
    "certificate_for",
    "configured_domains",
    "default_config_root",
    "has_certificate_for",
    "location",
    "remove_all",
    "remove_domain",
]
