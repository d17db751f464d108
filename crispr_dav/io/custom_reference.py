"""
Custom amplicon reference support.

When the amplicon sequence is given as a FASTA file instead of genome
coordinates, the amplicon itself becomes the reference genome: it is copied,
indexed with bwa, and a one-row region BED (and optionally a one-transcript
refGene table for translation) is written for it.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..exceptions import ConfigurationError
from ..core.command import Command
from ..jobs.runner import run_command

logger = logging.getLogger(__name__)

_NON_LETTER = re.compile(r'[^A-Za-z]')
_NON_ACGT = re.compile(r'[^ACGT]')


@dataclass
class CustomAmplicon:
    """Files derived from a custom amplicon FASTA."""
    seqid: str
    length: int
    ref_fasta: Path
    region_bed: Path
    ref_gene: Optional[Path] = None


def read_custom_sequence(path: Path) -> Tuple[str, str]:
    """
    Read a FASTA file that must hold exactly one ACGT-only sequence.

    Returns:
        Tuple of (sequence id, uppercase sequence)

    Raises:
        ConfigurationError: If the file is not a single-sequence ACGT FASTA
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError([f"Could not find {path}!"])

    chunks = []
    with open(path) as f:
        header = f.readline()
        match = re.match(r'^>(\S+)', header)
        if not match:
            raise ConfigurationError([f"Custom seq file {path} is not in fasta format!"])
        seqid = match.group(1)

        for line in f:
            if line.startswith('>'):
                raise ConfigurationError([f"Custom seq file {path} can have only one sequence!"])
            line = _NON_LETTER.sub('', line).upper()
            if _NON_ACGT.search(line):
                raise ConfigurationError([f"{path} contained non-ACGT alphabet."])
            chunks.append(line)

    sequence = ''.join(chunks)
    if not sequence:
        raise ConfigurationError([f"No sequence in {path}!"])

    return seqid, sequence


def write_fasta(seqid: str, sequence: str, output_path: Path) -> Path:
    """Write a single sequence in 80-character lines."""
    with open(output_path, 'w') as f:
        f.write(f">{seqid}\n")
        for i in range(0, len(sequence), 80):
            f.write(sequence[i:i+80] + "\n")
    return output_path


def write_region_bed(seqid: str, length: int, output_path: Path) -> Path:
    """Region BED covering the whole custom amplicon on the + strand."""
    with open(output_path, 'w') as f:
        f.write("\t".join([seqid, "0", str(length), seqid, seqid, "+"]) + "\n")
    return output_path


def write_frame_file(seqid: str, length: int, codon_start: int, output_path: Path) -> Path:
    """
    Write a refGene-format table with one single-exon transcript.

    Args:
        seqid: Sequence id, used as transcript name and chromosome
        length: Amplicon length
        codon_start: 1-based position of the first codon
        output_path: Output path
    """
    if not 1 <= codon_start <= length:
        raise ConfigurationError([f"Codon start {codon_start} is outside the amplicon (1-{length})."])

    cds_start = codon_start - 1
    header = ["#bin", "name", "chrom", "strand", "txStart", "txEnd",
              "cdsStart", "cdsEnd", "exonCount", "exonStarts", "exonEnds"]
    row = ["0", seqid, seqid, "+", cds_start, length, cds_start, length, 1, cds_start, length]

    with open(output_path, 'w') as f:
        f.write("\t".join(header) + "\n")
        f.write("\t".join(str(v) for v in row) + "\n")
    return output_path


def prepare_custom_amplicon(
    amp_fasta: Path,
    align_dir: Path,
    bwa: str,
    codon_start: Optional[int] = None,
) -> CustomAmplicon:
    """
    Turn a custom amplicon FASTA into a reference for the pipeline.

    Args:
        amp_fasta: FASTA with the amplicon sequence
        align_dir: Alignment directory receiving the derived files
        bwa: Path to the bwa executable
        codon_start: Optional 1-based translation start for the frame file

    Returns:
        CustomAmplicon describing the written files
    """
    amp_fasta = Path(amp_fasta)
    seqid, sequence = read_custom_sequence(amp_fasta)

    ref_fasta = Path(align_dir) / amp_fasta.name
    if not ref_fasta.exists():
        write_fasta(seqid, sequence, ref_fasta)

    logger.info(f"Creating bwa index for custom amplicon {seqid} ({len(sequence)} bp)")
    run_command(
        Command([bwa, 'index', str(ref_fasta)]),
        message="Failed to create bwa index",
    )

    region_bed = write_region_bed(seqid, len(sequence), Path(align_dir) / "amplicon.bed")

    ref_gene = None
    if codon_start:
        ref_gene = write_frame_file(
            seqid, len(sequence), codon_start, Path(align_dir) / "amplicon.frame"
        )

    return CustomAmplicon(
        seqid=seqid,
        length=len(sequence),
        ref_fasta=ref_fasta,
        region_bed=region_bed,
        ref_gene=ref_gene,
    )
