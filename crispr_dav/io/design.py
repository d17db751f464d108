"""
Parsing and validation of the experiment design files.

Three tab-separated files without headers describe a run:

- region BED: chrom, start, end, gene symbol, transcript id, strand (one row)
- target BED: chrom, start, end, name, guide sequence, strand, HDR edits (optional)
- site map: sample name followed by one or more guide sequences

Problems that can be detected independently are collected and raised
together in one ValidationError.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from ..core.models import Amplicon, ExperimentDesign, HdrEdit, TargetSite
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

MIN_AMPLICON_SIZE = 50
STRANDS = ('+', '-')

_STRIP_PATTERN = re.compile(r'[ \r\n]')
_HDR_PATTERN = re.compile(r'^(\d+)([ACGT])$')
_DNA_PATTERN = re.compile(r'^[ACGT]+$')
_COORD_PATTERN = re.compile(r'^[0-9]+$')


def read_rows(path: Path) -> Iterator[Tuple[int, List[str]]]:
    """
    Yield (line number, fields) for each data line of a tab-separated file.

    Blank lines and lines starting with '#' are skipped. Spaces are removed
    from each line before it is split on tabs.
    """
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            if line.startswith('#') or not line.strip():
                continue
            line = _STRIP_PATTERN.sub('', line)
            if not line:
                continue
            yield line_no, line.split('\t')


def is_coord(value: str) -> bool:
    """True for a non-negative integer written in plain digits."""
    return bool(_COORD_PATTERN.match(value))


def check_bed_coord(start: str, end: str) -> List[str]:
    """
    Check a pair of BED coordinates.

    Args:
        start: Start coordinate as read from the file
        end: End coordinate as read from the file

    Returns:
        List of problems (empty if the coordinates are valid). Both
        coordinates are always checked so every problem is reported.
    """
    errors = []
    start_ok = is_coord(start)
    end_ok = is_coord(end)

    if not start_ok:
        errors.append(f"Incorrect Start coordinate: {start}.")
    if not end_ok:
        errors.append(f"Incorrect End coordinate: {end}.")

    if start_ok and end_ok and int(start) >= int(end):
        errors.append(
            f"Start ({start}) >= End ({end}). But Start must be less than End."
        )

    return errors


def parse_hdr_edits(value: str) -> Tuple[Tuple[HdrEdit, ...], List[str]]:
    """
    Parse an HDR edit string such as '101900208C,101900229G'.

    Returns:
        Tuple of (edits, errors)
    """
    edits = []
    errors = []
    for token in value.split(','):
        if not token:
            continue
        match = _HDR_PATTERN.match(token.upper())
        if not match:
            errors.append(f"Incorrect HDR edit '{token}'. Expected <position><base>, e.g. 101900208C.")
            continue
        edits.append(HdrEdit(position=int(match.group(1)), base=match.group(2)))
    return tuple(edits), errors


def parse_amplicon(path: Path) -> Amplicon:
    """
    Load the single amplicon from a region BED file.

    Raises:
        ValidationError: If the file is missing or the row is invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError([f"Could not find {path}!"])

    rows = list(read_rows(path))
    if not rows:
        raise ValidationError([f"Could not find amplicon information in {path}."])

    errors = []
    if len(rows) > 1:
        errors.append(
            f"{path}: only one amplicon is allowed and no header is allowed "
            f"(found {len(rows)} rows)."
        )

    line_no, fields = rows[0]
    if len(fields) < 6:
        errors.append(f"{path} line {line_no}: amplicon row does not have 6 columns.")
        raise ValidationError(errors)

    chrom, start, end, gene_symbol, transcript_id, strand = fields[:6]

    coord_errors = check_bed_coord(start, end)
    errors.extend(f"Error in {path}: {err}" for err in coord_errors)

    strand = strand.upper()
    if strand not in STRANDS:
        errors.append(f"{path}: strand must be + or - (found '{strand}').")

    if not coord_errors and int(end) - int(start) < MIN_AMPLICON_SIZE:
        errors.append(
            f"{path}: amplicon size too small! Must be at least {MIN_AMPLICON_SIZE} bp."
        )

    if errors:
        raise ValidationError(errors)

    return Amplicon(
        chrom=chrom,
        start=int(start),
        end=int(end),
        gene_symbol=gene_symbol,
        transcript_id=transcript_id,
        strand=strand,
    )


def parse_target_sites(path: Path, amplicon: Amplicon) -> Tuple[Dict[str, TargetSite], List[str]]:
    """
    Load target sites and check them against the amplicon.

    Args:
        path: Target-site BED file
        amplicon: The run's amplicon

    Returns:
        Tuple of (name -> TargetSite for the valid rows, list of errors)
    """
    path = Path(path)
    if not path.is_file():
        return {}, [f"Could not find {path}!"]

    targets: Dict[str, TargetSite] = {}
    seen_names: Dict[str, int] = {}
    seen_seqs: Dict[str, int] = {}
    errors: List[str] = []

    for line_no, fields in read_rows(path):
        where = f"{path} line {line_no}"
        if len(fields) < 6:
            errors.append(f"{where}: target site row does not have at least 6 columns.")
            continue

        chrom, start, end, name, seq, strand = fields[:6]
        hdr = fields[6] if len(fields) > 6 else ''
        seq = seq.upper()
        row_errors = []

        if strand not in STRANDS:
            row_errors.append(f"{where}: strand must be + or - (found '{strand}').")

        coord_errors = check_bed_coord(start, end)
        row_errors.extend(f"{where}: {err}" for err in coord_errors)

        if chrom != amplicon.chrom:
            row_errors.append(
                f"{where}: CRISPR {name}'s chromosome {chrom} does not match "
                f"{amplicon.chrom} in amplicon bed."
            )

        if is_coord(start) and not amplicon.contains(int(start)):
            row_errors.append(f"{where}: CRISPR {name} start is not inside amplicon.")
        if is_coord(end) and not amplicon.contains(int(end)):
            row_errors.append(f"{where}: CRISPR {name} end is not inside amplicon.")

        if not _DNA_PATTERN.match(seq):
            row_errors.append(f"{where}: CRISPR {name} sequence {seq} contains non-ACGT letters.")

        if seq in seen_seqs:
            row_errors.append(
                f"{where}: CRISPR sequence {seq} is duplicated in {path} "
                f"(first seen on line {seen_seqs[seq]})."
            )
        if name in seen_names:
            row_errors.append(
                f"{where}: CRISPR name {name} is duplicated in {path} "
                f"(first seen on line {seen_names[name]})."
            )
        seen_seqs.setdefault(seq, line_no)
        seen_names.setdefault(name, line_no)

        edits, hdr_errors = parse_hdr_edits(hdr)
        row_errors.extend(f"{where}: {err}" for err in hdr_errors)
        for edit in edits:
            # HDR positions are 1-based, the amplicon is 0-based half-open
            if not amplicon.start < edit.position <= amplicon.end:
                row_errors.append(
                    f"{where}: HDR edit {edit} of CRISPR {name} is not inside amplicon."
                )

        if row_errors:
            errors.extend(row_errors)
            continue

        targets[name] = TargetSite(
            name=name,
            chrom=chrom,
            start=int(start),
            end=int(end),
            sequence=seq,
            strand=strand,
            hdr_edits=edits,
        )

    if not seen_names and not errors:
        errors.append(f"No CRISPR site found in {path}.")

    return targets, errors


def listed_sequences(path: Path) -> Set[str]:
    """Guide sequences named in a target-site BED, valid or not."""
    path = Path(path)
    if not path.is_file():
        return set()
    return {fields[4].upper() for _, fields in read_rows(path) if len(fields) >= 6}


def parse_site_map(path: Path, design: ExperimentDesign,
                   rejected: Iterable[str] = ()) -> List[str]:
    """
    Read the sample -> guide sequence map into the design's association tables.

    Args:
        path: Site map file
        design: Design whose targets the sequences are looked up in
        rejected: Sequences of target rows that already failed validation

    Returns:
        List of errors
    """
    path = Path(path)
    if not path.is_file():
        return [f"Could not find {path}!"]

    rejected = {seq.upper() for seq in rejected}
    errors: List[str] = []

    for line_no, fields in read_rows(path):
        where = f"{path} line {line_no}"
        if len(fields) < 2:
            errors.append(f"{where}: there must be at least 2 tab-separated columns.")
            continue

        sample, seqs = fields[0], fields[1:]
        if not sample:
            continue

        found = False
        for seq in seqs:
            if not seq:
                continue
            seq = seq.upper()
            if not _DNA_PATTERN.match(seq):
                errors.append(f"{where}: sequence {seq} contains non-ACGT letters.")
                continue
            site = design.target_by_sequence(seq)
            if site is None:
                if seq not in rejected:
                    errors.append(f"{where}: {seq} for sample {sample} is not a known CRISPR sequence.")
                continue
            found = True
            design.add_association(sample, site.name)

        if not found and not any(seqs):
            errors.append(f"{where}: no CRISPR sequence for sample {sample}.")

    return errors


def load_design(region: Path, crispr: Path, sitemap: Path) -> ExperimentDesign:
    """
    Build and validate the experiment design.

    The amplicon is checked first because the target sites are validated
    against it. Target-site and site-map problems are reported together.

    Args:
        region: Region BED with the amplicon
        crispr: Target-site BED
        sitemap: Sample -> guide sequence map

    Returns:
        Validated ExperimentDesign

    Raises:
        ValidationError: Listing every problem found
    """
    amplicon = parse_amplicon(region)
    targets, errors = parse_target_sites(crispr, amplicon)

    design = ExperimentDesign(amplicon=amplicon, targets=targets)
    rejected = listed_sequences(crispr) - {site.sequence for site in targets.values()}
    errors.extend(parse_site_map(sitemap, design, rejected=rejected))

    if errors:
        raise ValidationError(errors)

    logger.info(
        f"Loaded amplicon {amplicon.chrom}:{amplicon.start}-{amplicon.end} "
        f"({amplicon.gene_symbol}), {len(targets)} CRISPR sites, "
        f"{len(design.samples)} samples"
    )
    for site in design.sites:
        logger.debug(f"  {site}: {', '.join(design.samples_for_target(site))}")

    return design
