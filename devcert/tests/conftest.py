"""Test fixtures for devcert tests."""

import shutil
from pathlib import Path

import pytest

from devcert.lib.config import DevcertConfig, DistinguishedName
from devcert.lib.platforms.base import TrustStoreInstaller
from devcert.lib.user_interface import UserInterface

requires_openssl = pytest.mark.skipif(shutil.which("openssl") is None, reason="openssl not installed")


class RecordingUserInterface(UserInterface):
    """User interface that records prompts and answers with a fixed choice."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.prompts: list[str] = []
        self.skipped_browsers: list[tuple[str, str]] = []
        self.manual_installs: list[tuple[str, Path]] = []

    def confirm_privileged_action(self, description: str) -> bool:
        self.prompts.append(description)
        return self.answer

    def warn_browser_trust_skipped(self, browser: str, reason: str) -> None:
        self.skipped_browsers.append((browser, reason))

    def warn_manual_browser_install(self, browser: str, ca_cert_path: Path) -> None:
        self.manual_installs.append((browser, ca_cert_path))


class RecordingTrustStore(TrustStoreInstaller):
    """In-memory trust store that never touches the operating system."""

    platform_tag = "test"
    default_hosts_file = Path("/nonexistent/hosts")

    def __init__(self, config: DevcertConfig, home: Path | None = None) -> None:
        super().__init__(config, home)
        self.trusted: set[bytes] = set()
        self.calls: list[tuple[str, Path]] = []

    def add_to_system_trust_store(self, ca_cert_path: Path, ui: UserInterface) -> None:
        self.confirm(ui, "add the devcert root CA to the test trust store")
        self.calls.append(("add", ca_cert_path))
        self.trusted.add(ca_cert_path.read_bytes())

    def add_to_browser_trust_stores(
        self,
        ca_cert_path: Path,
        ui: UserInterface,
        skip_certutil_install: bool = False,
    ) -> None:
        self.calls.append(("add_browser", ca_cert_path))

    def is_cert_installed(self, ca_cert_path: Path) -> bool:
        return ca_cert_path.is_file() and ca_cert_path.read_bytes() in self.trusted

    def remove_certificates(self, ca_cert_path: Path, ui: UserInterface) -> None:
        self.calls.append(("remove", ca_cert_path))
        self.trusted.discard(ca_cert_path.read_bytes())


@pytest.fixture
def config_root(tmp_path: Path) -> Path:
    """Return temporary devcert config root."""
    return tmp_path / "devcert"


@pytest.fixture
def hosts_file(tmp_path: Path) -> Path:
    """Return writable hosts file with a single localhost entry."""
    path = tmp_path / "hosts"
    path.write_text("127.0.0.1 localhost\n")
    return path


@pytest.fixture
def ui() -> RecordingUserInterface:
    return RecordingUserInterface()


@pytest.fixture
def devcert_config(config_root: Path, hosts_file: Path, ui: RecordingUserInterface) -> DevcertConfig:
    """Return test configuration with a test CA subject and no prompts."""
    return DevcertConfig(
        config_root=config_root,
        key_size=2048,  # Smallest size current OpenSSL accepts for signing
        ca_subject=DistinguishedName(common_name="devcert test CA", organization="devcert tests"),
        ca_nickname="devcert-test",
        hosts_file=hosts_file,
        skip_confirmation=True,
        ui=ui,
    )


@pytest.fixture
def trust_store(devcert_config: DevcertConfig, tmp_path: Path) -> RecordingTrustStore:
    home = tmp_path / "home"
    home.mkdir(exist_ok=True)
    return RecordingTrustStore(devcert_config, home=home)
