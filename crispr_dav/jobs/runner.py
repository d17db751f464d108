"""
Running external commands.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from ..exceptions import CommandError
from ..core.command import Command

logger = logging.getLogger(__name__)


def run_command(
    command: Command,
    log_path: Optional[Path] = None,
    message: Optional[str] = None,
) -> int:
    """
    Run an external command and wait for it.

    Standard output goes to command.stdout when set, otherwise to log_path
    (together with standard error) when given. Otherwise output is captured
    and logged at DEBUG level.

    Args:
        command: Command to run
        log_path: Optional log file for combined output
        message: Description used in the error message

    Returns:
        The exit status (always 0)

    Raises:
        CommandError: If the command exits non-zero or cannot be started
    """
    logger.debug(f"Running: {command}")

    try:
        if command.stdout is not None:
            with open(command.stdout, 'w') as out:
                result = subprocess.run(command.argv, stdout=out, stderr=subprocess.PIPE, text=True)
            if result.returncode and result.stderr:
                logger.error(result.stderr.rstrip())
        elif log_path is not None:
            with open(log_path, 'w') as log:
                result = subprocess.run(command.argv, stdout=log, stderr=subprocess.STDOUT)
        else:
            result = subprocess.run(command.argv, capture_output=True, text=True)
            if result.stdout:
                logger.debug(result.stdout.rstrip())
            if result.returncode and result.stderr:
                logger.error(result.stderr.rstrip())
    except OSError as e:
        raise CommandError(str(command), 127, log_path, message=f"{message or 'Command failed'}: {e}")

    if result.returncode:
        raise CommandError(str(command), result.returncode, log_path, message=message)

    return result.returncode
