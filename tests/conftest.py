"""Shared fixtures: a small experiment with one amplicon, one site and two samples."""

import gzip
from pathlib import Path

import pytest

from crispr_dav.config import (
    AnalysisOptions,
    FilterParams,
    GenomeConfig,
    JobSettings,
    PipelineConfig,
    ToolPaths,
)
from crispr_dav.context import RunContext
from crispr_dav.io.design import load_design
from crispr_dav.io.fastq_map import resolve_fastqs


AMPLICON_ROW = "chr1\t100\t200\tGENE1\tNM_1\t+\n"
SITE_A_SEQ = "ACGTACGTACGTACGTACGT"
SITE_A_ROW = f"chr1\t120\t140\tsiteA\t{SITE_A_SEQ}\t+\n"
SITE_B_SEQ = "TTTTGGGGCCCCAAAATTTT"
SITE_B_ROW = f"chr1\t150\t170\tsiteB\t{SITE_B_SEQ}\t-\t160C\n"


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def write_fastq(path: Path) -> Path:
    with gzip.open(path, 'wt') as f:
        f.write("@r1\nACGT\n+\nIIII\n")
    return path


@pytest.fixture
def design_files(tmp_path):
    """Region, target-site and site-map files for siteA with samples s1 and s2."""
    inputs = tmp_path / "inputs"
    region = write(inputs / "amplicon.bed", AMPLICON_ROW)
    crispr = write(inputs / "sites.bed", SITE_A_ROW)
    sitemap = write(inputs / "sitemap.tsv", f"s1\t{SITE_A_SEQ}\ns2\t{SITE_A_SEQ}\n")
    return region, crispr, sitemap


@pytest.fixture
def fastqmap(tmp_path):
    """Fastq map with paired reads for s1 and single reads for s2."""
    reads = tmp_path / "reads"
    reads.mkdir()
    s1_r1 = write_fastq(reads / "s1_R1.fastq.gz")
    s1_r2 = write_fastq(reads / "s1_R2.fastq.gz")
    s2_r1 = write_fastq(reads / "s2_R1.fastq.gz")
    return write(
        tmp_path / "inputs" / "fastq.tsv",
        f"s1\t{s1_r1}\t{s1_r2}\ns2\t{s2_r1}\n",
    )


@pytest.fixture
def tool_dir(tmp_path):
    """Directory of placeholder tool files."""
    tools = tmp_path / "tools"
    tools.mkdir()
    for name in ('abra.jar', 'prinseq-lite.pl', 'samtools', 'bwa', 'java',
                 'bedtools', 'pysamstats', 'Rscript'):
        write(tools / name, "")
    return tools


@pytest.fixture
def bin_dir(tmp_path):
    """Scripts directory holding sample.pl and report.pl."""
    scripts = tmp_path / "bin"
    write(scripts / "sample.pl", "")
    write(scripts / "report.pl", "")
    return scripts


@pytest.fixture
def genome_files(tmp_path):
    ref = tmp_path / "genome"
    ref_fasta = write(ref / "hg19.fa", ">chr1\nACGT\n")
    write(ref / "hg19.fa.bwt", "")
    return ref_fasta


@pytest.fixture
def config(tool_dir, bin_dir, genome_files):
    return PipelineConfig(
        tools=ToolPaths(
            abra=str(tool_dir / 'abra.jar'),
            prinseq=str(tool_dir / 'prinseq-lite.pl'),
            samtools=str(tool_dir / 'samtools'),
            bwa=str(tool_dir / 'bwa'),
            java=str(tool_dir / 'java'),
            bedtools=str(tool_dir / 'bedtools'),
            pysamstats=str(tool_dir / 'pysamstats'),
            rscript=str(tool_dir / 'Rscript'),
        ),
        bin_dir=bin_dir,
        genomes={'hg19': GenomeConfig('hg19', genome_files, str(genome_files))},
        filters=FilterParams(),
        options=AnalysisOptions(),
        jobs=JobSettings(),
    )


@pytest.fixture
def config_yaml(tmp_path, tool_dir, bin_dir, genome_files):
    """The same configuration as a YAML file."""
    return write(tmp_path / "conf.yaml", f"""
app:
  abra: {tool_dir / 'abra.jar'}
  prinseq: {tool_dir / 'prinseq-lite.pl'}
  samtools: {tool_dir / 'samtools'}
  bwa: {tool_dir / 'bwa'}
  java: {tool_dir / 'java'}
  bedtools: {tool_dir / 'bedtools'}
  pysamstats: {tool_dir / 'pysamstats'}
  rscript: {tool_dir / 'Rscript'}
genomes:
  hg19:
    ref_fasta: {genome_files}
    bwa_idx: {genome_files}
prinseq:
  min_qual_mean: 25
other:
  remove_duplicate: N
  realign_flag: Y
scripts:
  bin_dir: {bin_dir}
jobs:
  poll_interval: 60
""")


@pytest.fixture
def run_context(tmp_path, config, design_files, fastqmap, genome_files):
    """A RunContext built directly, without running any external tool."""
    region, crispr, sitemap = design_files
    design = load_design(region, crispr, sitemap)
    samples = resolve_fastqs(fastqmap)
    ctx = RunContext(
        config=config,
        design=design,
        samples=samples,
        outdir=tmp_path / "out",
        genome='hg19',
        ref_fasta=genome_files,
        bwa_idx=str(genome_files),
        region_bed=region,
        crispr_bed=crispr,
        run_id='123',
    )
    ctx.make_dirs()
    return ctx
