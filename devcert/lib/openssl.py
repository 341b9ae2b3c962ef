"""OpenSSL command line invocation and output parsing."""

import math
import os
from datetime import UTC, datetime
from pathlib import Path

from .errors import DevcertError, MissingDependencyError
from .logging_config import LOGGER
from .process import command_exists, run_command

OPENSSL = "openssl"

# notAfter formats: classic OpenSSL/LibreSSL text and `-dateopt iso_8601`
_EXPIRY_FORMATS = (
    "%b %d %H:%M:%S %Y %Z",
    "%Y-%m-%d %H:%M:%SZ",
)


def ensure_openssl_available() -> None:
    """Raise MissingDependencyError when openssl is not on PATH."""
    if not command_exists(OPENSSL):
        raise MissingDependencyError(
            "OpenSSL",
            "OpenSSL is required to generate SSL certificates - make sure it is "
            "installed and available in your PATH",
        )


def openssl(args: list[str]) -> bytes:
    """Run an openssl sub-command and return its stdout.

    Raises:
        MissingDependencyError: If openssl is not installed
        ExternalToolError: If openssl exits non-zero (stderr attached)
    """
    return run_command([OPENSSL, *args]).stdout


def parse_openssl_expiry_data(data: str, now: datetime | None = None) -> int:
    """Convert `notAfter=<date>` output into whole days remaining.

    Args:
        data: Output of `openssl x509 -noout -enddate`
        now: Reference time (defaults to the current UTC time)

    Returns:
        Days until expiry, rounded down, or -1 if the text cannot be parsed
    """
    _, separator, value = data.strip().partition("=")
    if not separator:
        return -1
    value = value.strip()

    for fmt in _EXPIRY_FORMATS:
        try:
            expires_at = datetime.strptime(value, fmt).replace(tzinfo=UTC)
            break
        except ValueError:
            continue
    else:
        LOGGER.debug("Unrecognised expiry format: %s", value)
        return -1

    reference = now or datetime.now(UTC)
    return math.floor((expires_at - reference).total_seconds() / 86400)


def expiry_in_days(cert_path: Path) -> int:
    """Best-effort number of days before a certificate expires.

    Returns:
        Days remaining, or -1 on any invocation or parse failure
    """
    if not cert_path.is_file():
        return -1
    try:
        output = openssl(["x509", "-in", str(cert_path), "-noout", "-enddate"])
    except DevcertError as e:
        LOGGER.debug("Expiry lookup failed for %s: %s", cert_path, e)
        return -1
    return parse_openssl_expiry_data(output.decode("utf-8", errors="replace"))


def generate_key(path: Path, key_size: int = 2048, mode: int = 0o600) -> None:
    """Generate an RSA private key with `openssl genrsa` and restrict its mode.

    Args:
        path: Output key file
        key_size: RSA modulus size in bits
        mode: Permission bits applied after generation
    """
    LOGGER.debug("Generating %d-bit key %s", key_size, path)
    openssl(["genrsa", "-out", str(path), str(key_size)])
    os.chmod(path, mode)
