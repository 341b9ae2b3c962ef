"""Blocking subprocess execution with typed failures."""

import shutil
import subprocess

from .errors import ExternalToolError, MissingDependencyError
from .logging_config import LOGGER


def command_exists(name: str) -> bool:
    """Return True if an executable called name is on PATH."""
    return shutil.which(name) is not None


def run_command(
    args: list[str],
    input: bytes | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[bytes]:
    """Run a program and wait for it to exit.

    There is no timeout: a program that hangs blocks the caller.

    Args:
        args: Argument vector, program first
        input: Bytes written to the program's stdin
        check: Raise on a non-zero exit status

    Returns:
        CompletedProcess with captured stdout and stderr bytes

    Raises:
        MissingDependencyError: If the program is not installed
        ExternalToolError: If the program fails and check=True
    """
    LOGGER.debug("Running %s", args[0], extra={"command": " ".join(args)})
    try:
        result = subprocess.run(
            args,
            input=input,
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise MissingDependencyError(args[0]) from e

    if check and result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        if not stderr.strip():
            stderr = result.stdout.decode("utf-8", errors="replace")
        raise ExternalToolError(args, result.returncode, stderr)
    return result
