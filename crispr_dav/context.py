"""
Run context shared by every stage of a pipeline run.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .config import PipelineConfig
from .core.models import ExperimentDesign, Sample
from .exceptions import ConfigurationError
from .io.custom_reference import prepare_custom_amplicon
from .io.design import load_design
from .io.fastq_map import check_samples_resolved, resolve_fastqs, split_samples
from .io.refgene import alignment_view_enabled
from .jobs import sge

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Everything a run needs: configuration, validated inputs and directories.

    Attributes:
        config: Pipeline configuration
        design: Amplicon, target sites and sample/site relation
        samples: Samples to process, with their fastq files
        outdir: Output directory
        genome: Genome name (or custom amplicon sequence id)
        ref_fasta: Reference fasta
        bwa_idx: bwa index prefix
        region_bed: Region BED file describing the amplicon
        crispr_bed: Target-site BED file
        ref_gene: Optional refGene table
        alignment_view: Create the guide-on-cDNA alignment views
        use_cluster: Submit sample jobs to the SGE queue
        verbose: Pass --verbose to the worker and log commands
        run_id: Identifies this run's cluster jobs
    """
    config: PipelineConfig
    design: ExperimentDesign
    samples: Dict[str, Sample]
    outdir: Path
    genome: str
    ref_fasta: Path
    bwa_idx: str
    region_bed: Path
    crispr_bed: Path
    ref_gene: Optional[Path] = None
    alignment_view: bool = False
    use_cluster: bool = False
    verbose: bool = False
    run_id: str = field(default_factory=lambda: str(os.getpid()))

    @property
    def align_dir(self) -> Path:
        return align_dir_for(self.outdir)

    @property
    def deliv_dir(self) -> Path:
        return self.outdir / "deliverables"

    @property
    def tmp_dir(self) -> Path:
        return self.align_dir / "tmp"

    def site_dir(self, site: str) -> Path:
        return self.deliv_dir / site

    def assets_dir(self, site: str) -> Path:
        return self.site_dir(site) / "Assets"

    def make_dirs(self):
        for d in (self.align_dir, self.deliv_dir, self.tmp_dir):
            d.mkdir(parents=True, exist_ok=True)


def align_dir_for(outdir: Path) -> Path:
    return Path(outdir) / "align"


def check_sge_available():
    """
    Ensure SGE can be used for job submission.

    Raises:
        ConfigurationError: If qsub is not on PATH or SGE_ROOT is not set
    """
    if not sge.is_available():
        raise ConfigurationError(["SGE was not set up. Could not use --sge option."])


def build_context(
    config: PipelineConfig,
    crispr: Path,
    fastqmap: Path,
    sitemap: Path,
    outdir: Path = Path('.'),
    genome: Optional[str] = None,
    region: Optional[Path] = None,
    amp_fasta: Optional[Path] = None,
    codon_start: Optional[int] = None,
    use_cluster: bool = False,
    verbose: bool = False,
) -> RunContext:
    """
    Validate all inputs and create the output directories.

    Exactly one of genome (with region) or amp_fasta must be given.

    Raises:
        ConfigurationError: For configuration problems
        ValidationError: For problems in the input files
    """
    if bool(genome) == bool(amp_fasta):
        raise ConfigurationError(["Must specify --genome or --amp_fasta, but not both!"])
    if genome and not region:
        raise ConfigurationError(["--region must be provided together with --genome!"])

    if use_cluster:
        check_sge_available()

    outdir = Path(outdir)
    align_dir = align_dir_for(outdir)
    align_dir.mkdir(parents=True, exist_ok=True)

    if genome:
        genome = ''.join(genome.split())
        genome_config = config.genome(genome)
        ref_fasta = genome_config.ref_fasta
        bwa_idx = genome_config.bwa_idx
        ref_gene = genome_config.ref_gene
        region = Path(region)
    else:
        custom = prepare_custom_amplicon(
            amp_fasta, align_dir, config.tools.bwa, codon_start=codon_start,
        )
        genome = custom.seqid
        ref_fasta = custom.ref_fasta
        bwa_idx = str(custom.ref_fasta)
        ref_gene = custom.ref_gene
        region = custom.region_bed

    design = load_design(region, Path(crispr), Path(sitemap))

    fastqs = resolve_fastqs(Path(fastqmap))
    check_samples_resolved(design, fastqs)
    samples, unused = split_samples(design, fastqs)
    if unused:
        logger.warning(f"Samples in fastqmap without CRISPR sites are ignored: {', '.join(unused)}")

    alignment_view = alignment_view_enabled(ref_gene, design.amplicon.transcript_id)
    if not alignment_view:
        logger.info("No transcript coordinates found; alignment views will not be created")

    ctx = RunContext(
        config=config,
        design=design,
        samples=samples,
        outdir=outdir,
        genome=genome,
        ref_fasta=Path(ref_fasta),
        bwa_idx=bwa_idx,
        region_bed=region,
        crispr_bed=Path(crispr),
        ref_gene=ref_gene,
        alignment_view=alignment_view,
        use_cluster=use_cluster,
        verbose=verbose,
    )
    ctx.make_dirs()
    return ctx
