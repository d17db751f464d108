"""
Per-site aggregation of sample results.

After every sample job has finished, the per-sample tables written by the
worker are merged into one table per target site and kind, plots and the HTML
report are created, and the per-sample images are moved into the site's
deliverables.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ..context import RunContext
from ..exceptions import AggregationError, CommandError
from ..integrations.commands import plot_commands, report_command
from ..jobs.runner import run_command

logger = logging.getLogger(__name__)

# Table kinds in processing order
TABLE_KINDS = ('cnt', 'chr', 'snp', 'pct', 'len', 'can', 'hdr')

# Kinds written once per sample rather than once per sample and site
SAMPLE_LEVEL_KINDS = ('cnt', 'chr')

PLOT_MESSAGES = {
    'cnt': "Failed to create plot of read stats",
    'chr': "Failed to create plot of read count on chromosomes",
    'pct': "Failed to create indel count/pct plots",
    'hdr': "Failed to create HDR plot",
    'can': "Failed to create alignment view",
}

README_SOURCE = 'interm_file_desc'


def sample_table_path(align_dir: Path, sample: str, site: str, kind: str) -> Path:
    """Where the worker writes a sample's table of the given kind."""
    if kind in SAMPLE_LEVEL_KINDS:
        return Path(align_dir) / f"{sample}.{kind}"
    return Path(align_dir) / f"{sample}.{site}.{kind}"


def merged_table_path(align_dir: Path, site: str, kind: str) -> Path:
    return Path(align_dir) / f"{site}_{kind}.txt"


def _read_lines(path: Path) -> List[str]:
    # newline='' keeps each line's own ending so rows are written back unchanged
    with open(path, encoding='utf-8', newline='') as fh:
        lines = fh.readlines()
    if lines and not lines[-1].endswith(('\n', '\r')):
        lines[-1] += '\n'
    return lines


def merge_tables(infiles: Sequence[Path], outfile: Path, site: Optional[str] = None) -> Path:
    """
    Concatenate tab-separated tables that share a header row.

    The first line of each file is its header; the output keeps a single
    header followed by the body lines of every file in the given order.
    Body lines are copied verbatim.

    Args:
        infiles: Input tables
        outfile: Merged output path
        site: Target site name, for error messages

    Returns:
        Path to the merged table

    Raises:
        AggregationError: If an input is missing, unreadable, or has a different header
    """
    if not infiles:
        raise AggregationError(site, f"No input tables for {outfile}")

    header = None
    merged = []
    for path in infiles:
        path = Path(path)
        if not path.is_file():
            raise AggregationError(site, f"Missing input table {path}")
        try:
            lines = _read_lines(path)
        except (OSError, UnicodeDecodeError) as e:
            raise AggregationError(site, f"Could not read {path}: {e}")
        if not lines:
            raise AggregationError(site, f"Could not read {path}: file is empty")

        file_header = lines[0].rstrip('\r\n')
        if header is None:
            header = file_header
            merged.extend(lines)
        elif file_header != header:
            raise AggregationError(
                site, f"Header of {path} does not match: {file_header!r} vs {header!r}"
            )
        else:
            merged.extend(lines[1:])

    try:
        with open(outfile, 'w', encoding='utf-8', newline='') as fh:
            fh.writelines(merged)
    except OSError as e:
        raise AggregationError(site, f"Could not write {outfile}: {e}")
    return Path(outfile)


def move_sample_images(align_dir: Path, samples: Sequence[str], site: str,
                       ext: str, dest: Path) -> List[Path]:
    """Move `<sample>.<site>.*.<ext>` images into dest, replacing existing files."""
    moved = []
    for sample in samples:
        for image in sorted(Path(align_dir).glob(f"{sample}.{site}.*.{ext}")):
            target = Path(dest) / image.name
            if target.exists():
                target.unlink()
            shutil.move(str(image), str(target))
            moved.append(target)
    return moved


def copy_readme(bin_dir: Path, align_dir: Path) -> Optional[Path]:
    """Copy the description of the intermediate files into the alignment directory."""
    source = Path(bin_dir) / README_SOURCE
    if not source.is_file():
        return None
    target = Path(align_dir) / "README"
    shutil.copyfile(source, target)
    return target


class SiteAggregator:
    """
    Merge tables and create plots and reports for every target site.

    Args:
        ctx: Run context
        run: Command runner, replaced in tests
    """

    def __init__(self, ctx: RunContext, run: Callable = run_command):
        self.ctx = ctx
        self.run_cmd = run

    def kinds_for_site(self, site: str) -> List[str]:
        kinds = []
        for kind in TABLE_KINDS:
            if kind == 'can' and not self.ctx.alignment_view:
                continue
            if kind == 'hdr' and not self.ctx.design.targets[site].has_hdr:
                continue
            kinds.append(kind)
        return kinds

    def _run(self, site: str, command, message: str):
        try:
            self.run_cmd(command, message=message)
        except CommandError as e:
            raise AggregationError(site, str(e))

    def aggregate_site(self, site: str) -> List[Path]:
        """
        Merge tables, plot and report for one site.

        Returns:
            Paths of the merged tables

        Raises:
            AggregationError: On the first merge or command failure
        """
        ctx = self.ctx
        logger.info(f"Working on CRISPR site {site} across all samples ...")

        samples = ctx.design.samples_for_target(site)
        dest = ctx.assets_dir(site)
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AggregationError(site, f"Could not create {dest}: {e}")

        merged = []
        for kind in self.kinds_for_site(site):
            infiles = [sample_table_path(ctx.align_dir, s, site, kind) for s in samples]
            outfile = merge_tables(infiles, merged_table_path(ctx.align_dir, site, kind), site=site)
            merged.append(outfile)

            for command in plot_commands(ctx, site, kind, outfile):
                self._run(site, command, PLOT_MESSAGES.get(kind, "Failed to create plot"))
        logger.info("Combined data and created plots.")

        try:
            moved = move_sample_images(ctx.align_dir, samples, site, ctx.config.options.plot_ext, dest)
        except OSError as e:
            raise AggregationError(site, f"Could not move sample images to {dest}: {e}")
        logger.debug(f"Moved {len(moved)} sample images to {dest}")

        self._run(site, report_command(ctx, site), "Failed to create results html page")
        logger.info("Generated HTML report.")

        return merged

    def run(self) -> Dict[str, List[Path]]:
        """
        Aggregate every site in name order.

        A failing site does not stop the others.

        Raises:
            AggregationError: Listing every site that failed
        """
        copy_readme(self.ctx.config.bin_dir, self.ctx.align_dir)

        results = {}
        failures = []
        for site in self.ctx.design.sites:
            try:
                results[site] = self.aggregate_site(site)
            except AggregationError as e:
                logger.error(str(e))
                failures.append(str(e))

        if failures:
            raise AggregationError(
                None,
                f"Aggregation failed for {len(failures)} CRISPR site(s):\n  " + "\n  ".join(failures),
            )

        logger.info("All done!")
        return results
