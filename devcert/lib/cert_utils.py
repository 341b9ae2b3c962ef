"""Certificate inspection helpers built on the cryptography library."""

from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes

from .errors import FilesystemError


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def load_certificate(path: Path) -> x509.Certificate:
    """Read and parse a PEM certificate file.

    Raises:
        FilesystemError: If the file cannot be read
        ValueError: If the file is not a PEM certificate
    """
    try:
        pem_data = path.read_bytes()
    except OSError as e:
        raise FilesystemError(f"cannot read certificate {path}: {e}") from e
    return deserialize_certificate(pem_data)


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def certificate_fingerprint(cert: x509.Certificate, algorithm: hashes.HashAlgorithm | None = None) -> str:
    """Return the upper-case hex digest used as a thumbprint by OS trust stores.

    Args:
        cert: Certificate to fingerprint
        algorithm: Hash algorithm (SHA-1 by default, as keychain and cert store print)
    """
    digest = cert.fingerprint(algorithm or hashes.SHA1())
    return digest.hex().upper()


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Return True if cert carries a valid signature from issuer."""
    try:
        cert.verify_directly_issued_by(issuer)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False


def same_certificate(first: Path, second: Path) -> bool:
    """Return True if both files hold the same certificate (any PEM formatting)."""
    try:
        return load_certificate(first) == load_certificate(second)
    except (FilesystemError, ValueError):
        return False
