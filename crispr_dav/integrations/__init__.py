"""
External script integrations for CRISPR-DAV.
"""

from .commands import plot_commands, report_command, sample_command

__all__ = [
    'sample_command',
    'plot_commands',
    'report_command',
]
