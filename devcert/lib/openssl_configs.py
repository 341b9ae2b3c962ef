"""Temporary OpenSSL configuration files for CA and domain operations."""

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .config import DevcertConfig
from .logging_config import LOGGER
from .paths import DevcertPaths, to_idna

# X.509 upper bound for commonName
MAX_COMMON_NAME_LENGTH = 64

CA_SELF_SIGNING_TEMPLATE = """\
[ req ]
default_bits = {key_size}
default_md = sha256
prompt = no
string_mask = utf8only
distinguished_name = req_distinguished_name
x509_extensions = v3_ca

[ req_distinguished_name ]
{subject}

[ v3_ca ]
subjectKeyIdentifier = hash
authorityKeyIdentifier = keyid:always,issuer
basicConstraints = critical, CA:true, pathlen:0
keyUsage = critical, digitalSignature, cRLSign, keyCertSign
"""

DOMAIN_SIGNING_REQUEST_TEMPLATE = """\
[ req ]
default_bits = {key_size}
default_md = sha256
prompt = no
string_mask = utf8only
distinguished_name = req_distinguished_name
req_extensions = v3_req

[ req_distinguished_name ]
commonName = {common_name}

[ v3_req ]
subjectAltName = @subject_alt_names

[ subject_alt_names ]
{subject_alt_names}
"""

DOMAIN_CERTIFICATE_TEMPLATE = """\
[ ca ]
default_ca = devcert_ca

[ devcert_ca ]
database = {database}
serial = {serial}
new_certs_dir = {new_certs_dir}
default_md = sha256
default_days = {validity_days}
policy = devcert_policy
x509_extensions = domain_certificate_extensions
copy_extensions = none
unique_subject = no
email_in_dn = no
preserve = no

[ devcert_policy ]
commonName = supplied

[ domain_certificate_extensions ]
basicConstraints = CA:FALSE
subjectKeyIdentifier = hash
authorityKeyIdentifier = keyid,issuer
keyUsage = critical, digitalSignature, keyEncipherment
extendedKeyUsage = serverAuth
subjectAltName = @subject_alt_names

[ subject_alt_names ]
{subject_alt_names}
"""


def _config_path(path: Path) -> str:
    # OpenSSL treats backslashes in config values as escapes
    return path.as_posix()


def subject_alt_names(domains: list[str]) -> str:
    """Render `DNS.n = name` lines for each domain in IDNA form."""
    return "\n".join(f"DNS.{index} = {to_idna(domain)}" for index, domain in enumerate(domains, 1))


def common_name(domains: list[str]) -> str:
    return to_idna(domains[0])[:MAX_COMMON_NAME_LENGTH]


@contextmanager
def temporary_config(content: str) -> Iterator[Path]:
    """Write content to a temporary .conf file and delete it on exit."""
    fd, name = tempfile.mkstemp(prefix="devcert-", suffix=".conf")
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        yield path
    finally:
        path.unlink(missing_ok=True)


@contextmanager
def ca_self_signing_config(config: DevcertConfig) -> Iterator[Path]:
    """Config for `openssl req -new -x509` creating the root CA."""
    content = CA_SELF_SIGNING_TEMPLATE.format(
        key_size=config.key_size,
        subject=config.ca_subject.to_openssl_section(),
    )
    with temporary_config(content) as path:
        yield path


@contextmanager
def domain_signing_request_config(domains: list[str], key_size: int = 2048) -> Iterator[Path]:
    """Config for `openssl req -new` building a domain CSR."""
    content = DOMAIN_SIGNING_REQUEST_TEMPLATE.format(
        key_size=key_size,
        common_name=common_name(domains),
        subject_alt_names=subject_alt_names(domains),
    )
    with temporary_config(content) as path:
        LOGGER.debug("Wrote signing request config for %s to %s", domains, path)
        yield path


@contextmanager
def domain_certificate_config(
    domains: list[str],
    paths: DevcertPaths,
    validity_days: int,
) -> Iterator[Path]:
    """Config for `openssl ca` signing or revoking a domain certificate."""
    paths.issued_dir.mkdir(parents=True, exist_ok=True)
    content = DOMAIN_CERTIFICATE_TEMPLATE.format(
        database=_config_path(paths.database),
        serial=_config_path(paths.serial),
        new_certs_dir=_config_path(paths.issued_dir),
        validity_days=validity_days,
        subject_alt_names=subject_alt_names(domains),
    )
    with temporary_config(content) as path:
        LOGGER.debug("Wrote certificate config for %s to %s", domains, path)
        yield path
