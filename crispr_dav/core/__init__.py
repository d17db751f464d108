"""
Core data model for CRISPR-DAV.
"""

from .command import Command
from .models import (
    NO_TRANSCRIPT,
    Amplicon,
    ExperimentDesign,
    HdrEdit,
    Sample,
    TargetSite,
)

__all__ = [
    'Amplicon',
    'TargetSite',
    'HdrEdit',
    'Sample',
    'ExperimentDesign',
    'NO_TRANSCRIPT',
    'Command',
]
