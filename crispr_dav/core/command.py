"""
Command line representation shared by the command builders and runners.
"""

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass
class Command:
    """An external command as an argument list, with optional stdout redirection."""
    argv: List[str]
    stdout: Optional[Path] = None

    def __post_init__(self):
        self.argv = [str(a) for a in self.argv]

    def __str__(self) -> str:
        text = shlex.join(self.argv)
        if self.stdout is not None:
            text += f" > {shlex.quote(str(self.stdout))}"
        return text
