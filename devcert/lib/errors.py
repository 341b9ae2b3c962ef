"""Exception hierarchy for devcert operations."""


class DevcertError(Exception):
    """Base class for all devcert failures."""


class InvalidDomainError(DevcertError, ValueError):
    """Raised when a requested domain name fails validation."""

    def __init__(self, domain: str, reason: str = "") -> None:
        self.domain = domain
        message = f'"{domain}" is not a valid domain name.'
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class UnsupportedPlatformError(DevcertError):
    """Raised when no trust store installer exists for the running platform."""

    def __init__(self, platform_tag: str) -> None:
        self.platform_tag = platform_tag
        super().__init__(f'Platform not supported: "{platform_tag}"')


class MissingDependencyError(DevcertError):
    """Raised when a required external program is not installed."""

    def __init__(self, program: str, hint: str = "") -> None:
        self.program = program
        message = f"{program} not found"
        if hint:
            message = f"{message}: {hint}"
        super().__init__(message)


class ExternalToolError(DevcertError):
    """Raised when an external program exits with a non-zero status.

    Attributes:
        command: Argument vector that was executed
        returncode: Process exit status
        stderr: Captured diagnostic output, decoded as text
    """

    def __init__(self, command: list[str], returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"command failed (exit {returncode}): {' '.join(command)}: {stderr.strip()}"
        )


class TrustStoreError(DevcertError):
    """Raised when adding to or removing from a trust store fails."""


class ConsentDeniedError(TrustStoreError):
    """Raised when the user declines a privileged trust store change."""


class FilesystemError(DevcertError, OSError):
    """Raised for permission or IO failures on devcert's own files."""


class StaleCertificateError(DevcertError):
    """Raised when a cached domain certificate was not signed by the current CA."""

    def __init__(self, domains: list[str]) -> None:
        self.domains = domains
        super().__init__(
            f"cached certificate for {', '.join(domains)} was not issued by the current "
            "root CA; remove it with remove_domain() and request it again"
        )
