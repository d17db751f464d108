"""Commandline interaction with the SGE cluster scheduler.
"""

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Set

logger = logging.getLogger(__name__)

_jobname_pat = re.compile(r'^\s*Full jobname:\s*(?P<name>\S+)', re.MULTILINE)


def is_available() -> bool:
    """qsub must be on PATH and SGE_ROOT set."""
    return bool(shutil.which('qsub')) and bool(os.environ.get('SGE_ROOT'))


def make_job_name(prefix: str, index: int, run_id: str) -> str:
    """Job names carry the run id so concurrent runs do not see each other's jobs."""
    return f"{prefix}{index}_{run_id}"


def qsub_command(command: List[str], job_name: str, log_path: Path, cores: int = 2) -> List[str]:
    return [
        'qsub', '-cwd', '-pe', 'orte', str(cores), '-V',
        '-o', str(log_path), '-j', 'y', '-b', 'y',
        '-N', job_name,
    ] + [str(c) for c in command]


def submit_job(command: List[str], job_name: str, log_path: Path, cores: int = 2) -> int:
    """Submit a job, returning qsub's exit status."""
    cl = qsub_command(command, job_name, log_path, cores)
    logger.debug(f"Submitting: {' '.join(cl)}")
    result = subprocess.run(cl, capture_output=True, text=True)
    if result.returncode:
        logger.error(result.stderr.rstrip())
    else:
        logger.debug(result.stdout.rstrip())
    return result.returncode


def parse_job_names(qstat_output: str) -> Set[str]:
    return set(_jobname_pat.findall(qstat_output))


def queued_job_names(job_names: Iterable[str]) -> Set[str]:
    """Which of the given job names are still on the queue (pending or running)."""
    wanted = set(job_names)
    if not wanted:
        return set()
    result = subprocess.run(['qstat', '-r'], capture_output=True, text=True)
    if result.returncode:
        # An unreadable queue counts as jobs still present
        logger.warning(f"qstat failed with exit status {result.returncode}: {result.stderr.rstrip()}")
        return wanted
    return parse_job_names(result.stdout) & wanted


def stop_jobs(job_names: Iterable[str]):
    names = sorted(job_names)
    if not names:
        return
    result = subprocess.run(['qdel'] + names, capture_output=True, text=True)
    if result.returncode:
        logger.warning(f"qdel exited with status {result.returncode}: {result.stderr.rstrip()}")
