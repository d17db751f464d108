"""
Dispatching sample jobs and waiting for them to finish.

Job state after dispatch comes only from the status source (marker files),
never from the backend, so a restarted run picks up where the last one
stopped: samples with a done marker are skipped, stale failed markers are
removed and the sample is sent again.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..config import JobSettings
from ..core.command import Command
from ..exceptions import JobFailure, TimeoutFailure, WatchdogFailure
from .status import JobState, MarkerStatusSource

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """One sample's job."""
    sample: str
    state: JobState = JobState.PENDING
    log_path: Optional[Path] = None
    skipped: bool = False


@dataclass
class MonitorResult:
    """Outcome of waiting for a set of jobs."""
    jobs: Dict[str, Job] = field(default_factory=dict)
    elapsed: float = 0

    def _with_state(self, state: JobState) -> List[str]:
        return sorted(j.sample for j in self.jobs.values() if j.state is state)

    @property
    def done(self) -> List[str]:
        return self._with_state(JobState.DONE)

    @property
    def failed(self) -> List[str]:
        return self._with_state(JobState.FAILED)

    @property
    def skipped(self) -> List[str]:
        return sorted(j.sample for j in self.jobs.values() if j.skipped)

    @property
    def unfinished(self) -> List[str]:
        return sorted(j.sample for j in self.jobs.values() if not j.state.is_terminal)

    @property
    def success(self) -> bool:
        return not self.failed and not self.unfinished


class JobMonitor:
    """
    Drive a backend over all samples and poll until every job is terminal.

    Args:
        backend: LocalBackend or ClusterBackend (or anything with the same interface)
        status: Source of marker-derived job states
        settings: Polling interval, run-time ceiling and watchdog grace period
        sleep: Sleep function, replaced in tests
    """

    def __init__(
        self,
        backend,
        status: MarkerStatusSource,
        settings: JobSettings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self.status = status
        self.settings = settings
        self.sleep = sleep
        self.jobs: Dict[str, Job] = {}
        self.elapsed = 0

    def dispatch(self, commands: Dict[str, Command]) -> Dict[str, Job]:
        """Submit every sample that is not already done, in sample order."""
        for sample in sorted(commands):
            job = Job(sample=sample, log_path=self.status.log_path(sample))
            self.jobs[sample] = job

            if self.status.query(sample) is JobState.DONE:
                logger.info(f"{sample} was already processed, skipping")
                job.state = JobState.DONE
                job.skipped = True
                continue

            self.status.clear_failed(sample)
            logger.info(f"Processing {sample} ...")
            logger.debug(str(commands[sample]))
            job.state = self.backend.submit(sample, commands[sample])

        return self.jobs

    def _active(self) -> List[Job]:
        return [j for j in self.jobs.values() if not j.skipped]

    def _refresh(self, jobs: List[Job]) -> int:
        finished = 0
        for job in jobs:
            state = self.status.query(job.sample)
            if state.is_terminal:
                job.state = state
                finished += 1
        return finished

    def wait(self) -> MonitorResult:
        """
        Poll the status source until all dispatched jobs are terminal or the
        run-time ceiling is reached.

        Raises:
            WatchdogFailure: If the cluster dropped every job and none left a marker
        """
        active = self._active()
        total = len(active)

        while total:
            finished = self._refresh(active)
            if finished == total:
                break
            if self.elapsed >= self.settings.max_runtime:
                logger.error(f"Reached the run-time limit of {self.settings.max_runtime} seconds")
                break

            remaining = total - finished
            if remaining <= 2:
                logger.info(f"Waiting for {remaining} sample(s) to finish ...")

            if self.elapsed and self.backend.is_async and finished == 0:
                self._check_queue(active)

            self.sleep(self.settings.poll_interval)
            self.elapsed += self.settings.poll_interval

        return MonitorResult(jobs=dict(self.jobs), elapsed=self.elapsed)

    def _check_queue(self, active: List[Job]):
        """Abort when nothing is queued and nothing has finished after a grace period."""
        if self.backend.live_job_names():
            return

        logger.warning(
            f"None of the submitted jobs are on the queue or finished; "
            f"checking again in {self.settings.watchdog_grace} seconds"
        )
        self.sleep(self.settings.watchdog_grace)
        self.elapsed += self.settings.watchdog_grace

        if self.backend.live_job_names() or self.status.has_any_marker():
            return

        # Abort whether or not the dropped jobs wrote a log; the count is only reported
        log_count = sum(1 for j in active if self.status.log_path(j.sample).exists())
        self.backend.cancel_all()
        raise WatchdogFailure([j.sample for j in active], log_count, self.status.align_dir)

    def run(self, commands: Dict[str, Command]) -> MonitorResult:
        """
        Dispatch all samples and wait for them.

        Raises:
            JobFailure: If any sample failed
            TimeoutFailure: If samples were unfinished at the run-time ceiling
            WatchdogFailure: If the cluster dropped every job
        """
        self.dispatch(commands)
        result = self.wait()

        if result.unfinished:
            raise TimeoutFailure(result.unfinished, self.status.align_dir, result.elapsed)
        if result.failed:
            raise JobFailure(result.failed, self.status.align_dir)

        logger.info(f"All {len(result.jobs)} samples processed")
        return result
