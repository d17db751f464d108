"""
Input file parsing and validation for CRISPR-DAV.
"""

from .design import (
    check_bed_coord,
    load_design,
    parse_amplicon,
    listed_sequences,
    parse_site_map,
    parse_target_sites,
)
from .fastq_map import (
    check_samples_resolved,
    resolve_fastqs,
    split_samples,
)
from .refgene import alignment_view_enabled, find_transcript

__all__ = [
    'load_design',
    'parse_amplicon',
    'parse_target_sites',
    'parse_site_map',
    'listed_sequences',
    'check_bed_coord',
    'resolve_fastqs',
    'check_samples_resolved',
    'split_samples',
    'find_transcript',
    'alignment_view_enabled',
]
