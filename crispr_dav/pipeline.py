"""
Main pipeline orchestration for CRISPR-DAV.

A run has three stages: the inputs are validated into a RunContext, one job
per sample is dispatched and waited for, and the per-sample results are
aggregated per target site.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import PipelineConfig, verify_tools
from .context import RunContext, build_context
from .analysis.aggregation import SiteAggregator
from .integrations.commands import sample_command
from .jobs.backends import make_backend
from .jobs.monitor import JobMonitor, MonitorResult
from .jobs.runner import run_command
from .jobs.status import MarkerStatusSource

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of a successful run."""
    jobs: MonitorResult
    tables: Dict[str, List[Path]] = field(default_factory=dict)


class CrisprPipeline:
    """
    Run all samples of an experiment and aggregate the results.

    Args:
        ctx: Validated run context
        backend: Execution backend; chosen from ctx.use_cluster if not given
        sleep: Sleep function used while polling
        run: Command runner used for plots and reports
    """

    def __init__(
        self,
        ctx: RunContext,
        backend=None,
        sleep: Callable[[float], None] = time.sleep,
        run: Callable = run_command,
    ):
        self.ctx = ctx
        self.status = MarkerStatusSource(ctx.align_dir)
        self.backend = backend or make_backend(
            self.status, ctx.config.jobs, ctx.use_cluster, ctx.run_id
        )
        self.monitor = JobMonitor(self.backend, self.status, ctx.config.jobs, sleep=sleep)
        self.aggregator = SiteAggregator(ctx, run=run)

    def sample_commands(self):
        return {name: sample_command(self.ctx, sample) for name, sample in self.ctx.samples.items()}

    def run(self) -> PipelineResult:
        """
        Process every sample, then aggregate per target site.

        Raises:
            SubmissionError: If the queue rejects a job
            JobFailure: If any sample failed or timed out
            WatchdogFailure: If the cluster dropped every job
            AggregationError: If any site could not be aggregated
        """
        mode = "SGE" if self.backend.is_async else "local"
        logger.info(
            f"Processing {len(self.ctx.samples)} samples for "
            f"{len(self.ctx.design.sites)} CRISPR sites ({mode} mode)"
        )

        jobs = self.monitor.run(self.sample_commands())
        tables = self.aggregator.run()
        return PipelineResult(jobs=jobs, tables=tables)


def run_pipeline(
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
) -> PipelineResult:
    """
    Convenience function to validate inputs and run the full pipeline.

    Args:
        config: Pipeline configuration
        crispr: Target-site BED file
        fastqmap: Sample to fastq file map
        sitemap: Sample to target sequence map
        outdir: Output directory
        genome: Genome name from the configuration
        region: Amplicon BED file (with genome)
        amp_fasta: Custom amplicon FASTA (instead of genome and region)
        codon_start: Translation start within the custom amplicon
        use_cluster: Submit jobs to SGE
        verbose: Verbose worker output

    Returns:
        PipelineResult
    """
    verify_tools(config.tools)
    ctx = build_context(
        config,
        crispr=crispr,
        fastqmap=fastqmap,
        sitemap=sitemap,
        outdir=outdir,
        genome=genome,
        region=region,
        amp_fasta=amp_fasta,
        codon_start=codon_start,
        use_cluster=use_cluster,
        verbose=verbose,
    )
    return CrisprPipeline(ctx).run()
