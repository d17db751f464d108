"""
Job states derived from the worker's marker files.

The per-sample worker writes `<sample>.done` on success and the orchestrator
(or the worker) writes `<sample>.failed` on failure, both in the alignment
directory next to `<sample>.log`.
"""

import logging
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class JobState(Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


class MarkerStatusSource:
    """Reads sample job states from marker files in the alignment directory."""

    def __init__(self, align_dir: Path):
        self.align_dir = Path(align_dir)

    def done_marker(self, sample: str) -> Path:
        return self.align_dir / f"{sample}.done"

    def failed_marker(self, sample: str) -> Path:
        return self.align_dir / f"{sample}.failed"

    def log_path(self, sample: str) -> Path:
        return self.align_dir / f"{sample}.log"

    def query(self, sample: str) -> JobState:
        """A done marker wins over a failed marker."""
        if self.done_marker(sample).exists():
            return JobState.DONE
        if self.failed_marker(sample).exists():
            return JobState.FAILED
        return JobState.PENDING

    def mark_failed(self, sample: str):
        self.failed_marker(sample).touch()

    def clear_failed(self, sample: str) -> bool:
        """Remove a failed marker left by an earlier run."""
        marker = self.failed_marker(sample)
        if marker.exists():
            logger.debug(f"Removing stale marker {marker}")
            marker.unlink()
            return True
        return False

    def has_any_marker(self) -> bool:
        """True if any sample in the directory has finished, whether or not it is ours."""
        return any(self.align_dir.glob("*.done")) or any(self.align_dir.glob("*.failed"))
