"""Interactive confirmation gate for privileged trust store changes."""

import sys
from pathlib import Path

from .logging_config import LOGGER


class UserInterface:
    """Hooks devcert calls before and around privileged actions.

    Subclass and pass an instance through DevcertConfig.ui or
    ProvisionOptions.ui to change how the user is asked.
    """

    def confirm_privileged_action(self, description: str) -> bool:
        """Ask whether a privileged action may run.

        Args:
            description: Human readable summary of the action

        Returns:
            True to proceed, False to abort the action
        """
        return True

    def warn_browser_trust_skipped(self, browser: str, reason: str) -> None:
        """Tell the user a browser trust store was left untouched."""
        LOGGER.warning("Skipping %s trust store: %s", browser, reason)

    def warn_manual_browser_install(self, browser: str, ca_cert_path: Path) -> None:
        """Tell the user to import the root CA into a browser by hand."""
        LOGGER.warning(
            "%s keeps its own trust store and cannot be updated automatically on this "
            "platform. Import %s as a trusted authority in its certificate settings.",
            browser,
            ca_cert_path,
        )


class ConsoleUserInterface(UserInterface):
    """Prompts on the terminal; proceeds without asking when stdin is not a TTY."""

    def confirm_privileged_action(self, description: str) -> bool:
        if not sys.stdin or not sys.stdin.isatty():
            LOGGER.info("Non-interactive session, proceeding with: %s", description)
            return True

        answer = input(f"devcert needs elevated privileges to {description}. Continue? [Y/n] ")
        return answer.strip().lower() in ("", "y", "yes")


class NonInteractiveUserInterface(UserInterface):
    """Confirms every action without prompting."""

    def confirm_privileged_action(self, description: str) -> bool:
        LOGGER.debug("Auto-confirming: %s", description)
        return True
