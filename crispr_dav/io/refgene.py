"""
Transcript lookup in UCSC refGene coordinate tables.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

REFGENE_COLUMNS = [
    'bin', 'name', 'chrom', 'strand', 'txStart', 'txEnd',
    'cdsStart', 'cdsEnd', 'exonCount', 'exonStarts', 'exonEnds',
]


@dataclass
class TranscriptCoord:
    """Coordinates of one transcript (0-based, end exclusive)."""
    name: str
    chrom: str
    strand: str
    tx_start: int
    tx_end: int
    cds_start: int
    cds_end: int
    exon_starts: List[int]
    exon_ends: List[int]

    @property
    def is_coding(self) -> bool:
        return self.cds_end > self.cds_start


def _parse_positions(value) -> List[int]:
    return [int(p) for p in str(value).split(',') if p.strip()]


def find_transcript(ref_gene: Path, transcript_id: str) -> Optional[TranscriptCoord]:
    """
    Find a transcript in a refGene table.

    The table has the UCSC columns bin, name, chrom, strand, txStart, txEnd,
    cdsStart, cdsEnd, exonCount, exonStarts, exonEnds, ... and may start with
    a '#' header line.

    Args:
        ref_gene: Path to the refGene table
        transcript_id: RefSeq id such as NM_000546

    Returns:
        TranscriptCoord of the first matching row, or None
    """
    try:
        df = pd.read_csv(
            ref_gene,
            sep='\t',
            header=None,
            comment='#',
            usecols=range(len(REFGENE_COLUMNS)),
            names=REFGENE_COLUMNS,
            dtype=str,
        )
    except (ValueError, pd.errors.EmptyDataError) as e:
        raise ConfigurationError([f"Could not read refGene table {ref_gene}: {e}"])

    hits = df[df['name'] == transcript_id]
    if hits.empty:
        return None
    if len(hits) > 1:
        logger.warning(
            f"{transcript_id} has {len(hits)} entries in {ref_gene}; using the first"
        )

    row = hits.iloc[0]
    return TranscriptCoord(
        name=row['name'],
        chrom=row['chrom'],
        strand=row['strand'],
        tx_start=int(row['txStart']),
        tx_end=int(row['txEnd']),
        cds_start=int(row['cdsStart']),
        cds_end=int(row['cdsEnd']),
        exon_starts=_parse_positions(row['exonStarts']),
        exon_ends=_parse_positions(row['exonEnds']),
    )


def alignment_view_enabled(ref_gene: Optional[Path], transcript_id: str) -> bool:
    """
    Whether the guide-on-cDNA alignment view can be created.

    Requires a transcript id other than '-', an existing refGene table and the
    transcript being present in it.
    """
    if not transcript_id or transcript_id == '-':
        return False
    if ref_gene is None or not Path(ref_gene).is_file():
        return False
    return find_transcript(Path(ref_gene), transcript_id) is not None
