"""Configuration dataclasses for devcert."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .user_interface import ConsoleUserInterface, UserInterface

APP_NAME = "devcert"


def default_config_root() -> Path:
    """Return the platform configuration directory for devcert.

    DEVCERT_CONFIG_ROOT overrides the platform default.

    Returns:
        Linux: $XDG_CONFIG_HOME/devcert (or ~/.config/devcert)
        macOS: ~/Library/Application Support/devcert
        Windows: %LOCALAPPDATA%/devcert
    """
    override = os.environ.get("DEVCERT_CONFIG_ROOT")
    if override:
        return Path(override).expanduser()

    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_NAME
    if sys.platform == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else home / "AppData" / "Local"
        return base / APP_NAME

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config_home) if xdg_config_home else home / ".config"
    return base / APP_NAME


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name for the root CA."""

    common_name: str = "devcert"
    organization: str = "devcert"
    organizational_unit: str = "Development"
    country: str = "US"

    def to_openssl_section(self) -> str:
        """Render as the body of an OpenSSL [req_distinguished_name] section."""
        return "\n".join(
            [
                f"countryName = {self.country}",
                f"organizationName = {self.organization}",
                f"organizationalUnitName = {self.organizational_unit}",
                f"commonName = {self.common_name}",
            ]
        )


@dataclass
class DevcertConfig:
    """devcert configuration, passed explicitly to every component."""

    config_root: Path = field(default_factory=default_config_root)
    key_size: int = 2048
    ca_validity_days: int = 825
    domain_validity_days: int = 825
    ca_subject: DistinguishedName = field(default_factory=DistinguishedName)
    ca_nickname: str = "devcert"
    hosts_file: Path | None = None
    skip_confirmation: bool = False
    ui: UserInterface = field(default_factory=ConsoleUserInterface)
