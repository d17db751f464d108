"""
Error types raised by the CRISPR-DAV orchestrator.

Library code raises these; only the command-line layer turns them into
messages on stderr and a non-zero exit status.
"""

from pathlib import Path
from typing import Iterable, List, Optional


class CrisprDavError(Exception):
    """Base class for all orchestrator errors."""


class ConfigurationError(CrisprDavError):
    """Malformed, missing or contradictory configuration or input files.

    Carries every problem that was found so the operator can fix them in
    one pass.
    """

    def __init__(self, errors: Iterable[str], header: str = "Configuration errors"):
        self.errors: List[str] = list(errors)
        self.header = header
        super().__init__(self._format())

    def _format(self) -> str:
        if len(self.errors) == 1:
            return f"{self.header}: {self.errors[0]}"
        lines = [f"{self.header} ({len(self.errors)}):"]
        lines.extend(f"  {err}" for err in self.errors)
        return "\n".join(lines)


class ValidationError(ConfigurationError):
    """Problems found while validating the experiment input files."""

    def __init__(self, errors: Iterable[str], header: str = "Validation errors"):
        super().__init__(errors, header=header)


class CommandError(CrisprDavError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int,
                 log_path: Optional[Path] = None, message: Optional[str] = None):
        self.command = command
        self.returncode = returncode
        self.log_path = log_path
        text = message or "Command failed"
        text = f"{text} (exit status {returncode}): {command}"
        if log_path is not None:
            text += f"\nSee {log_path}"
        super().__init__(text)


class SubmissionError(CrisprDavError):
    """The cluster queue rejected a job submission.

    This points at the queue setup rather than at the sample, so the whole
    run stops.
    """

    def __init__(self, sample: str, command: str, returncode: int):
        self.sample = sample
        self.command = command
        self.returncode = returncode
        super().__init__(
            f"Failed to submit job for {sample} (exit status {returncode}): {command}"
        )


class JobFailure(CrisprDavError):
    """One or more sample jobs ended in the failed state."""

    def __init__(self, samples: Iterable[str], log_dir: Path):
        self.samples = sorted(samples)
        self.log_dir = log_dir
        super().__init__(self._format())

    def _format(self) -> str:
        return (
            f"Failed in processing samples: {', '.join(self.samples)}. "
            f"Please check the log files in {self.log_dir}"
        )


class TimeoutFailure(JobFailure):
    """Samples were still unfinished when the run-time ceiling was reached."""

    def __init__(self, samples: Iterable[str], log_dir: Path, elapsed: float):
        self.elapsed = elapsed
        super().__init__(samples, log_dir)

    def _format(self) -> str:
        hours = self.elapsed / 3600
        return (
            f"Timed out after {hours:.1f} hours with unfinished samples: "
            f"{', '.join(self.samples)}. Please check the log files in {self.log_dir}"
        )


class WatchdogFailure(CrisprDavError):
    """The cluster appears to have dropped every submitted job."""

    def __init__(self, samples: Iterable[str], log_count: int, log_dir: Path):
        self.samples = sorted(samples)
        self.log_count = log_count
        self.log_dir = log_dir
        total = len(self.samples)
        if log_count:
            detail = f"{log_count} of {total} jobs wrote a log but none finished"
        else:
            detail = f"none of {total} jobs wrote a log"
        super().__init__(
            f"Queued jobs have failed: no jobs left on the queue and {detail}. "
            f"Please check the log files in {log_dir}"
        )


class AggregationError(CrisprDavError):
    """Merging tables or creating plots/reports failed for a target site."""

    def __init__(self, site: Optional[str], message: str):
        self.site = site
        prefix = f"CRISPR site {site}: " if site else ""
        super().__init__(f"{prefix}{message}")
