"""
Per-site aggregation for CRISPR-DAV.
"""

from .aggregation import (
    TABLE_KINDS,
    SiteAggregator,
    merge_tables,
    sample_table_path,
)

__all__ = [
    'TABLE_KINDS',
    'SiteAggregator',
    'merge_tables',
    'sample_table_path',
]
