"""Request options and result models for devcert operations."""

from dataclasses import dataclass
from pathlib import Path

from .user_interface import UserInterface


@dataclass
class ProvisionOptions:
    """Per-call options for certificate_for().

    Attributes:
        get_ca_buffer: Include the root CA certificate bytes in the result
        get_ca_path: Include the root CA certificate path in the result
        skip_certutil_install: Never install NSS certutil to update browser stores
        skip_hosts_file: Leave the hosts file untouched
        require_browser_trust: Fail instead of warning when a browser store cannot be updated
        ui: User interface used for this call instead of DevcertConfig.ui
    """

    get_ca_buffer: bool = False
    get_ca_path: bool = False
    skip_certutil_install: bool = False
    skip_hosts_file: bool = False
    require_browser_trust: bool = False
    ui: UserInterface | None = None


@dataclass
class ProvisionResult:
    """Domain certificate material returned to the caller."""

    key: bytes
    cert: bytes
    ca: bytes | None = None
    ca_path: Path | None = None


@dataclass(frozen=True)
class CACredentials:
    """Root CA key and certificate paths handed to a signing operation."""

    key_path: Path
    cert_path: Path
