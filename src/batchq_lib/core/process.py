# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Execution of external batch-system commands.

Every interaction with a batch system is a single invocation of one of its
command-line tools. `run_command` performs that invocation and either returns
the captured standard output or raises `ProcessError` carrying the captured
standard error. No retries and no timeouts are applied here: a hung command
blocks the caller.
"""

import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from .error import ProcessError
from .logger import get_logger

logger = get_logger(__name__)


def resolve_binary(root: str | Path | None, name: str) -> str:
    """
    Resolve the path to a batch-system binary.

    Args:
        root (str | Path | None): Directory containing the batch-system binaries.
            If empty or None, the binary is looked up in PATH when executed.
        name (str): Name of the binary.

    Returns:
        str: Path to the binary or its bare name.
    """
    if not root or not str(root).strip():
        return name

    return str(Path(root) / name)


def run_command(
    executable: str,
    args: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
    stdin: str | None = None,
    cwd: Path | None = None,
) -> str:
    """
    Run an external command and return its standard output.

    Args:
        executable (str): The command to execute.
        args (Sequence[str]): Arguments passed to the command.
        env (Mapping[str, str] | None): Environment variables added to (or
            overriding) the environment of the current process.
        stdin (str | None): Text passed to the standard input of the command.
        cwd (Path | None): Working directory of the command.

    Returns:
        str: Standard output of the command.

    Raises:
        ProcessError: If the command cannot be executed or exits with a non-zero code.
    """
    command = [executable, *(str(arg) for arg in args)]
    logger.debug(" ".join(command))

    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update({str(k): str(v) for k, v in env.items()})

    try:
        result = subprocess.run(
            command,
            input=stdin if stdin is not None else "",
            text=True,
            check=False,
            capture_output=True,
            errors="replace",
            env=full_env,
            cwd=cwd,
        )
    except OSError as e:
        raise ProcessError(command, None, str(e)) from e

    if result.returncode != 0:
        raise ProcessError(command, result.returncode, result.stderr.strip())

    return result.stdout
