"""
Command builders for the external CRISPR-DAV scripts.

Builders only assemble argument lists from the run context; running them is
left to crispr_dav.jobs.
"""

from pathlib import Path
from typing import List

from ..context import RunContext
from ..core.command import Command
from ..core.models import Sample

# Plot script for each aggregated table kind. snp and len are merged only.
PLOT_SCRIPTS = {
    'cnt': 'read_stats.R',
    'chr': 'read_chr.R',
    'pct': 'indel.R',
    'hdr': 'hdr.R',
}


def _yn(flag: bool) -> str:
    return 'Y' if flag else 'N'


def sample_command(ctx: RunContext, sample: Sample) -> Command:
    """
    Build the per-sample worker command (sample.pl).

    Args:
        ctx: Run context
        sample: Sample with its fastq files

    Returns:
        Command running the worker for one sample
    """
    if not sample.fastqs:
        raise ValueError(f"Fastq input is empty for {sample.name}!")

    config = ctx.config
    tools = config.tools
    filters = config.filters
    options = config.options
    amplicon = ctx.design.amplicon

    cmd = [config.script('sample.pl'), sample.name, sample.read1, ctx.align_dir]
    if sample.read2:
        cmd.extend(['--read2fastq', sample.read2])
    if tools.picard:
        cmd.extend(['--picard', tools.picard])

    cmd.extend([
        '--abra', tools.abra,
        '--prinseq', tools.prinseq,
        '--samtools', tools.samtools,
        '--bwa', tools.bwa,
        '--java', tools.java,
        '--bedtools', tools.bedtools,
        '--pysamstats', tools.pysamstats,
        '--rscript', tools.rscript,
        '--tmpdir', ctx.tmp_dir,
        '--min_qual_mean', filters.min_qual_mean,
        '--min_len', filters.min_len,
        '--ns_max_p', filters.ns_max_p,
    ])

    if options.remove_duplicate:
        cmd.append('--unique')
    if options.realign:
        cmd.append('--realign')
    if options.min_mapq:
        cmd.extend(['--min_mapq', options.min_mapq])

    cmd.extend([
        '--genome', ctx.genome,
        '--idxbase', ctx.bwa_idx,
        '--ref_fasta', ctx.ref_fasta,
    ])
    if ctx.ref_gene:
        cmd.extend(['--refGene', ctx.ref_gene])
    if amplicon.has_transcript:
        cmd.extend(['--refseqid', amplicon.transcript_id])

    # The worker expects a 1-based amplicon start
    target_names = ','.join(t.name for t in ctx.design.targets_for_sample(sample.name))
    cmd.extend([
        '--chr', amplicon.chrom,
        '--amplicon_start', amplicon.start + 1,
        '--amplicon_end', amplicon.end,
        '--target_bed', ctx.crispr_bed,
        '--target_names', target_names,
        '--wing_length', options.wing_length,
    ])

    if not ctx.alignment_view:
        cmd.append('--nocx')
    if options.high_res:
        cmd.append('--high_res')
    if ctx.verbose:
        cmd.append('--verbose')

    return Command(cmd)


def plot_commands(ctx: RunContext, site: str, kind: str, table: Path) -> List[Command]:
    """
    Build the plotting commands for one merged table.

    Args:
        ctx: Run context
        site: Target site name
        kind: Table kind (cnt, chr, snp, pct, len, can, hdr)
        table: Merged table path

    Returns:
        Commands to run in order; empty for kinds without plots
    """
    options = ctx.config.options
    ext = options.plot_ext
    dest = ctx.assets_dir(site)

    if kind == 'can':
        return [
            Command(
                [ctx.config.script('crispr2cx.pl'), '-input', table, '-perc', pct],
                stdout=ctx.site_dir(site) / f"{site}_cx{pct}.html",
            )
            for pct in (0, 1)
        ]

    if kind not in PLOT_SCRIPTS:
        return []

    cmd = [ctx.config.tools.rscript, ctx.config.bin_dir / 'Rscripts' / PLOT_SCRIPTS[kind], f"--inf={table}"]
    if kind == 'cnt':
        cmd.append(f"--outf={dest / f'{site}.readcnt.{ext}'}")
        cmd.append(f"--rmd={_yn(options.remove_duplicate)}")
    elif kind == 'chr':
        cmd.append(f"--outf={dest / f'{site}.readchr.{ext}'}")
    elif kind == 'pct':
        cmd.append(f"--cntf={dest / f'{site}.indelcnt.{ext}'}")
        cmd.append(f"--pctf={dest / f'{site}.indelpct.{ext}'}")
    elif kind == 'hdr':
        cmd.append(f"--sub={site}")
        cmd.append(f"--outf={dest / f'{site}.hdr.{ext}'}")

    if options.high_res:
        cmd.append("--high_res=1")

    return [Command(cmd)]


def report_command(ctx: RunContext, site: str) -> Command:
    """Build the HTML report command (report.pl) for one site."""
    filters = ctx.config.filters
    options = ctx.config.options

    cmd = [
        ctx.config.script('report.pl'),
        '--ref', ctx.genome,
        '--gene', ctx.design.amplicon.gene_symbol,
        '--region', ctx.region_bed,
        '--crispr', ctx.crispr_bed,
        '--cname', site,
    ]
    if not ctx.alignment_view:
        cmd.append('--nocx')
    if options.high_res:
        cmd.append('--high_res')
    cmd.extend([
        '--min_qual_mean', filters.min_qual_mean,
        '--min_len', filters.min_len,
        '--ns_max_p', filters.ns_max_p,
        '--min_mapq', options.min_mapq,
    ])
    if options.realign:
        cmd.append('--realign')
    cmd.extend(['--wing_length', options.wing_length, ctx.align_dir, ctx.deliv_dir])

    return Command(cmd)
