"""
Fastq map parsing and validation.

The fastq map is a tab-separated file without header: sample name, read1
fastq and optionally read2 fastq.
"""

import logging
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from ..core.models import ExperimentDesign, Sample
from ..exceptions import ValidationError
from .design import read_rows

logger = logging.getLogger(__name__)

FASTQ_EXTENSIONS = ('.gz',)
MAX_FASTQS_PER_SAMPLE = 2


def check_fastq_file(path: Path, extensions: Sequence[str] = FASTQ_EXTENSIONS) -> List[str]:
    """Return problems with a single fastq file (empty if usable)."""
    if not path.is_file() or path.stat().st_size == 0:
        return [f"{path} was not found or empty"]
    if not path.name.endswith(tuple(extensions)):
        return [f"{path} was not {'/'.join(extensions)} file"]
    return []


def resolve_fastqs(
    path: Path,
    extensions: Sequence[str] = FASTQ_EXTENSIONS,
) -> Dict[str, Sample]:
    """
    Load the fastq map and check every read file.

    Args:
        path: Fastq map file
        extensions: Accepted file name suffixes

    Returns:
        Dict mapping sample name to Sample with its usable read files

    Raises:
        ValidationError: Listing the problems of all rows
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError([f"Could not find {path}"])

    samples: Dict[str, Sample] = {}
    errors: List[str] = []

    for line_no, fields in read_rows(path):
        sample, files = fields[0], [f for f in fields[1:] if f]
        if not sample:
            continue

        if sample in samples:
            errors.append(f"Sample {sample} is listed more than once (line {line_no})")
            continue

        if len(files) > MAX_FASTQS_PER_SAMPLE:
            errors.append(
                f"Sample {sample} has {len(files)} fastq files; at most "
                f"{MAX_FASTQS_PER_SAMPLE} are allowed (line {line_no})"
            )
            continue

        usable = []
        for name in files:
            fastq = Path(name)
            file_errors = check_fastq_file(fastq, extensions)
            if file_errors:
                errors.extend(file_errors)
            else:
                usable.append(fastq)

        if usable:
            samples[sample] = Sample(name=sample, fastqs=usable)
        else:
            errors.append(f"No fastq file for {sample}")

    if errors:
        errors.append(f"Note: all fields in {path} must be separated by tab")
        raise ValidationError(errors, header="Fastq file errors")

    logger.info(f"Resolved fastq files for {len(samples)} samples")
    return samples


def check_samples_resolved(design: ExperimentDesign, samples: Dict[str, Sample]):
    """
    Ensure every sample in the site map has fastq files.

    Raises:
        ValidationError: Naming every unresolved sample
    """
    missing = [s for s in design.samples if s not in samples]
    if missing:
        raise ValidationError(
            [f"Sample {s} in sitemap is not found in fastqmap!" for s in missing]
        )


def split_samples(
    design: ExperimentDesign,
    samples: Dict[str, Sample],
) -> Tuple[Dict[str, Sample], List[str]]:
    """
    Restrict the resolved samples to those that have target sites.

    Returns:
        Tuple of (samples to process, names of fastq-map samples without a site)
    """
    wanted = {name: samples[name] for name in design.samples if name in samples}
    unused = sorted(set(samples) - set(wanted))
    return wanted, unused
