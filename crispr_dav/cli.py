"""
Command-line interface for CRISPR-DAV.

CRISPR-DAV: CRISPR Data Analysis and Visualization for amplicon sequencing
"""

import logging
import os
import signal
import sys
from pathlib import Path

import click

from . import __version__
from .config import CONFIG_TEMPLATE, PipelineConfig, verify_tools
from .context import build_context
from .exceptions import CrisprDavError, WatchdogFailure
from .pipeline import CrisprPipeline

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def terminate_process_group():
    """Stop this process and everything it started (e.g. a hung qstat)."""
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    os.killpg(os.getpgrp(), signal.SIGTERM)


def input_options(func):
    """Options shared by run and validate."""
    options = [
        click.option('--conf', type=click.Path(exists=True, dir_okay=False), required=True,
                     help='YAML configuration file'),
        click.option('--genome', type=str,
                     help='Genome name, a section in the configuration file'),
        click.option('--region', type=click.Path(exists=True, dir_okay=False),
                     help='Amplicon BED file: chr, start, end, genesym, refseqid, strand'),
        click.option('--amp-fasta', 'amp_fasta', type=click.Path(exists=True, dir_okay=False),
                     help='Custom amplicon FASTA, used instead of --genome and --region'),
        click.option('--codon-start', 'codon_start', type=int,
                     help='Translation start (1-based) within the custom amplicon'),
        click.option('--crispr', type=click.Path(exists=True, dir_okay=False), required=True,
                     help='Target-site BED file: chr, start, end, name, sequence, strand[, HDR]'),
        click.option('--fastqmap', type=click.Path(exists=True, dir_okay=False), required=True,
                     help='Sample to fastq file map: sample, read1[, read2]'),
        click.option('--sitemap', type=click.Path(exists=True, dir_okay=False), required=True,
                     help='Sample to target sequence map: sample, seq1[, seq2 ...]'),
        click.option('--sge', is_flag=True, default=False,
                     help='Submit sample jobs to SGE (default: run locally)'),
        click.option('--outdir', '-o', type=click.Path(file_okay=False), default='.',
                     help='Output directory (default: current directory)'),
        click.option('--verbose', '-v', is_flag=True, default=False,
                     help='Debug logging and verbose worker output'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build(conf, genome, region, amp_fasta, codon_start, crispr, fastqmap,
           sitemap, sge, outdir, verbose, check_tools):
    config = PipelineConfig.from_yaml(Path(conf))
    if check_tools:
        verify_tools(config.tools)
    return build_context(
        config,
        crispr=Path(crispr),
        fastqmap=Path(fastqmap),
        sitemap=Path(sitemap),
        outdir=Path(outdir),
        genome=genome,
        region=Path(region) if region else None,
        amp_fasta=Path(amp_fasta) if amp_fasta else None,
        codon_start=codon_start,
        use_cluster=sge,
        verbose=verbose,
    )


@click.group()
@click.version_option(version=__version__)
def cli():
    """CRISPR-DAV: CRISPR Data Analysis and Visualization."""
    pass


@cli.command()
@input_options
def run(conf, genome, region, amp_fasta, codon_start, crispr, fastqmap,
        sitemap, sge, outdir, verbose):
    """
    Process all samples and create per-site tables, plots and reports.

    \b
    Example:
      crispr-dav run --conf conf.yaml --genome hg19 --region amplicon.bed \\
        --crispr sites.bed --fastqmap fastq.tsv --sitemap sitemap.tsv
    """
    setup_logging(verbose)

    try:
        ctx = _build(conf, genome, region, amp_fasta, codon_start, crispr,
                     fastqmap, sitemap, sge, outdir, verbose, check_tools=True)
        result = CrisprPipeline(ctx).run()
    except WatchdogFailure as e:
        click.echo(f"Error: {e}", err=True)
        terminate_process_group()
        sys.exit(1)
    except CrisprDavError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\nPipeline complete!")
    click.echo(f"Processed {len(result.jobs.jobs)} samples "
               f"({len(result.jobs.skipped)} already done)")
    click.echo(f"Results written to: {ctx.deliv_dir}")


@cli.command()
@input_options
def validate(conf, genome, region, amp_fasta, codon_start, crispr, fastqmap,
             sitemap, sge, outdir, verbose):
    """Check configuration and input files without processing any sample."""
    setup_logging(verbose)

    try:
        ctx = _build(conf, genome, region, amp_fasta, codon_start, crispr,
                     fastqmap, sitemap, sge, outdir, verbose, check_tools=False)
    except CrisprDavError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    amplicon = ctx.design.amplicon
    click.echo(f"Amplicon: {amplicon.chrom}:{amplicon.start}-{amplicon.end} "
               f"{amplicon.gene_symbol} ({amplicon.strand})")
    click.echo(f"Alignment view: {'yes' if ctx.alignment_view else 'no'}")
    click.echo(f"\nCRISPR sites ({len(ctx.design.sites)}):")
    for site in ctx.design.sites:
        target = ctx.design.targets[site]
        hdr = f", HDR {target.hdr_string}" if target.has_hdr else ""
        samples = ctx.design.samples_for_target(site)
        click.echo(f"  {site}: {target.chrom}:{target.start}-{target.end}{hdr}; "
                   f"samples: {', '.join(samples)}")
    click.echo(f"\nSamples ({len(ctx.samples)}):")
    for name in sorted(ctx.samples):
        sample = ctx.samples[name]
        kind = "paired" if sample.is_paired else "single"
        click.echo(f"  {name}: {kind} ({sample.fastq_string()})")
    click.echo("\nAll inputs are valid.")


@cli.command()
@click.option('--output', '-o', type=click.Path(), default='crispr_dav.yaml',
              help='Output config file path')
def init(output):
    """Generate a template configuration file."""
    with open(output, 'w') as f:
        f.write(CONFIG_TEMPLATE)

    click.echo(f"Generated configuration template: {output}")
    click.echo("\nEdit this file and run:")
    click.echo(f"  crispr-dav run --conf {output} ...")


if __name__ == '__main__':
    cli()
