"""Platform trust store installers, selected once from sys.platform."""

import sys

from ..config import DevcertConfig
from ..errors import UnsupportedPlatformError
from .base import TrustStoreInstaller
from .darwin import DarwinTrustStore
from .linux import LinuxTrustStore
from .windows import WindowsTrustStore

INSTALLERS: dict[str, type[TrustStoreInstaller]] = {
    "linux": LinuxTrustStore,
    "darwin": DarwinTrustStore,
    "win32": WindowsTrustStore,
}


def get_platform(config: DevcertConfig, platform_tag: str | None = None) -> TrustStoreInstaller:
    """Return the trust store installer for a platform tag.

    Args:
        config: devcert configuration handed to the installer
        platform_tag: sys.platform style tag (defaults to the running platform)

    Raises:
        UnsupportedPlatformError: If the platform has no installer
    """
    tag = platform_tag or sys.platform
    installer = INSTALLERS.get(tag)
    if installer is None:
        raise UnsupportedPlatformError(tag)
    return installer(config)


__all__ = [
    "DarwinTrustStore",
    "INSTALLERS",
    "LinuxTrustStore",
    "TrustStoreInstaller",
    "WindowsTrustStore",
    "get_platform",
]
