"""On-disk layout and domain-set identifiers."""

import hashlib
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidDomainError

MAX_DOMAIN_LENGTH = 253
MAX_DOMAIN_PATH_LENGTH = 200

DOMAIN_KEY_FILE = "private-key.key"
DOMAIN_CERT_FILE = "certificate.crt"
DOMAIN_CSR_FILE = "certificate-signing-request.csr"

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9_-]{1,63}(?<!-)$")
_TOP_LEVEL_RE = re.compile(r"^(?:[a-z][a-z0-9-]*|xn--[a-z0-9-]+)$")


def to_idna(domain: str) -> str:
    """Return the ASCII (IDNA) form of a domain, as written into certificates."""
    try:
        return domain.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise InvalidDomainError(domain, str(e)) from e


def validate_domain(domain: str) -> None:
    """Check a domain name with permissive DNS syntax rules.

    Unicode labels are allowed (validated through their IDNA form), wildcard
    labels are not, and subdomains are allowed. A bare top-level name is
    rejected except for "localhost".

    Raises:
        InvalidDomainError: If the domain is not acceptable
    """
    if not isinstance(domain, str) or not domain:
        raise InvalidDomainError(str(domain), "Domain must be a non-empty string.")
    if domain.lower() == "localhost":
        return
    if "*" in domain:
        raise InvalidDomainError(domain, "Wildcard domains are not supported.")

    ascii_domain = to_idna(domain.lower())
    if len(ascii_domain) > MAX_DOMAIN_LENGTH:
        raise InvalidDomainError(domain, f"Longer than {MAX_DOMAIN_LENGTH} characters.")

    labels = ascii_domain.split(".")
    if len(labels) < 2:
        raise InvalidDomainError(domain, "A domain needs at least two labels.")
    for label in labels:
        if not _LABEL_RE.match(label):
            raise InvalidDomainError(domain, f'Invalid label "{label}".')
    if not _TOP_LEVEL_RE.match(labels[-1]):
        raise InvalidDomainError(domain, f'Invalid top-level label "{labels[-1]}".')


def normalize_domains(domains: str | Iterable[str]) -> list[str]:
    """Validate and canonicalize a domain request.

    Args:
        domains: A single domain or a sequence of domains

    Returns:
        Lower-cased domains in request order with duplicates dropped

    Raises:
        InvalidDomainError: If the list is empty or any domain is invalid
    """
    requested = [domains] if isinstance(domains, str) else list(domains)
    if not requested:
        raise InvalidDomainError("", "At least one domain is required.")

    normalized: list[str] = []
    for domain in requested:
        validate_domain(domain)
        lowered = domain.lower()
        if lowered not in normalized:
            normalized.append(lowered)
    return normalized


def stable_domain_path(domains: str | Iterable[str]) -> str:
    """Return the order-independent directory identifier for a domain set.

    A single domain maps to itself. Several domains map to their sorted,
    de-duplicated names joined with "+"; identifiers too long for a file
    name are replaced by a SHA-256 digest of that joined form.
    """
    canonical = sorted(normalize_domains(domains))
    if len(canonical) == 1:
        return canonical[0]

    joined = "+".join(canonical)
    if len(joined) > MAX_DOMAIN_PATH_LENGTH:
        return "sha256-" + hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return joined


@dataclass(frozen=True)
class DevcertPaths:
    """File layout under a devcert config root."""

    root: Path

    @property
    def root_ca_key(self) -> Path:
        return self.root / "rootCA.key"

    @property
    def root_ca_cert(self) -> Path:
        return self.root / "rootCA.crt"

    @property
    def ca_dir(self) -> Path:
        """Directory holding the OpenSSL CA ledger (index, serial, issued copies)."""
        return self.root / "certificate-authority"

    @property
    def database(self) -> Path:
        return self.ca_dir / "index.txt"

    @property
    def database_attributes(self) -> Path:
        return self.ca_dir / "index.txt.attr"

    @property
    def serial(self) -> Path:
        return self.ca_dir / "serial"

    @property
    def issued_dir(self) -> Path:
        return self.ca_dir / "issued"

    @property
    def domains_dir(self) -> Path:
        return self.root / "domains"

    def for_domain(self, domain_id: str, *parts: str) -> Path:
        return self.domains_dir.joinpath(domain_id, *parts)

    def domain_key(self, domain_id: str) -> Path:
        return self.for_domain(domain_id, DOMAIN_KEY_FILE)

    def domain_cert(self, domain_id: str) -> Path:
        return self.for_domain(domain_id, DOMAIN_CERT_FILE)

    def domain_csr(self, domain_id: str) -> Path:
        return self.for_domain(domain_id, DOMAIN_CSR_FILE)
