"""
Sample job dispatch and monitoring for CRISPR-DAV.
"""

from .backends import ClusterBackend, LocalBackend, make_backend
from .monitor import Job, JobMonitor, MonitorResult
from .runner import run_command
from .status import JobState, MarkerStatusSource

__all__ = [
    'LocalBackend',
    'ClusterBackend',
    'make_backend',
    'Job',
    'JobMonitor',
    'MonitorResult',
    'JobState',
    'MarkerStatusSource',
    'run_command',
]
