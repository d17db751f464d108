"""
Execution backends for per-sample jobs.

Both backends offer the same interface:

    submit(sample, command) -> JobState
    is_async
    live_job_names()
    cancel_all()

LocalBackend runs each job to completion before returning. ClusterBackend
hands the job to SGE and returns immediately; the job monitor then follows
the marker files.
"""

import logging
from typing import Dict, Set

from ..config import JobSettings
from ..core.command import Command
from ..exceptions import CommandError, SubmissionError
from . import sge
from .runner import run_command
from .status import JobState, MarkerStatusSource

logger = logging.getLogger(__name__)


class LocalBackend:
    """Run sample jobs inline, one after the other."""

    is_async = False

    def __init__(self, status: MarkerStatusSource):
        self.status = status

    def submit(self, sample: str, command: Command) -> JobState:
        log_path = self.status.log_path(sample)
        try:
            run_command(command, log_path=log_path, message=f"Failed in processing sample {sample}")
        except CommandError as e:
            logger.error(str(e))
            self.status.mark_failed(sample)
            return JobState.FAILED

        state = self.status.query(sample)
        if state is not JobState.DONE:
            logger.warning(f"{sample} exited normally but did not write {self.status.done_marker(sample)}")
            self.status.mark_failed(sample)
            return JobState.FAILED
        return state

    def live_job_names(self) -> Set[str]:
        return set()

    def cancel_all(self):
        pass


class ClusterBackend:
    """Submit sample jobs to SGE with qsub."""

    is_async = True

    def __init__(self, status: MarkerStatusSource, settings: JobSettings, run_id: str):
        self.status = status
        self.settings = settings
        self.run_id = run_id
        self.jobs: Dict[str, str] = {}  # job name -> sample
        self._count = 0

    def submit(self, sample: str, command: Command) -> JobState:
        self._count += 1
        job_name = sge.make_job_name(self.settings.job_name_prefix, self._count, self.run_id)
        log_path = self.status.log_path(sample)

        returncode = sge.submit_job(command.argv, job_name, log_path, self.settings.cores_per_job)
        if returncode:
            raise SubmissionError(
                sample,
                ' '.join(sge.qsub_command(command.argv, job_name, log_path, self.settings.cores_per_job)),
                returncode,
            )

        self.jobs[job_name] = sample
        logger.debug(f"Submitted {sample} as {job_name}")
        return JobState.SUBMITTED

    def live_job_names(self) -> Set[str]:
        return sge.queued_job_names(self.jobs)

    def cancel_all(self):
        sge.stop_jobs(self.jobs)


def make_backend(status: MarkerStatusSource, settings: JobSettings,
                 use_cluster: bool, run_id: str):
    if use_cluster:
        return ClusterBackend(status, settings, run_id)
    return LocalBackend(status)
