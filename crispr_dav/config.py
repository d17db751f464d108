"""
Configuration classes for CRISPR-DAV.

The configuration file is YAML with these sections:

    app:      paths of the external tools
    genomes:  per-genome reference fasta, bwa index and refGene table
    prinseq:  read filtering parameters
    other:    analysis options
    scripts:  directory holding the worker, report and plotting scripts
    jobs:     polling and cluster submission settings
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = (
    'abra', 'prinseq', 'samtools', 'bwa',
    'java', 'bedtools', 'pysamstats', 'rscript',
)

REQUIRED_SCRIPTS = ('sample.pl', 'report.pl')


@dataclass
class ToolPaths:
    """Paths of the external programs passed on to the per-sample worker."""
    abra: str
    prinseq: str
    samtools: str
    bwa: str
    java: str
    bedtools: str
    pysamstats: str
    rscript: str
    picard: Optional[str] = None


@dataclass
class GenomeConfig:
    """Reference files for one genome build."""
    name: str
    ref_fasta: Path
    bwa_idx: str
    ref_gene: Optional[Path] = None

    def validate(self) -> List[str]:
        errors = []
        if not self.ref_fasta or not Path(self.ref_fasta).is_file():
            errors.append(f"Could not find ref_fasta entry for {self.name} or the reference fasta file!")
        if not self.bwa_idx or not Path(f"{self.bwa_idx}.bwt").is_file():
            errors.append(f"Could not find bwa_idx entry for {self.name} or the bwa index files!")
        if self.ref_gene and not Path(self.ref_gene).is_file():
            errors.append(f"Could not find refGene file {self.ref_gene}!")
        return errors


@dataclass
class FilterParams:
    """Read filtering parameters (prinseq)."""
    min_qual_mean: int = 30
    min_len: int = 50
    ns_max_p: int = 3


@dataclass
class AnalysisOptions:
    """Analysis switches passed to the worker and report scripts."""
    remove_duplicate: bool = False
    realign: bool = True
    min_mapq: int = 20
    wing_length: int = 40
    high_res: bool = False

    @property
    def plot_ext(self) -> str:
        return 'tif' if self.high_res else 'png'


@dataclass
class JobSettings:
    """Job dispatch and polling settings."""
    poll_interval: int = 120  # seconds
    max_runtime: int = 2 * 24 * 60 * 60  # seconds
    watchdog_grace: int = 360  # seconds
    cores_per_job: int = 2
    job_name_prefix: str = 'C'


@dataclass
class PipelineConfig:
    """Full pipeline configuration."""
    tools: ToolPaths
    bin_dir: Path
    genomes: Dict[str, GenomeConfig] = field(default_factory=dict)
    filters: FilterParams = field(default_factory=FilterParams)
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    jobs: JobSettings = field(default_factory=JobSettings)

    @classmethod
    def from_yaml(cls, path: Path) -> 'PipelineConfig':
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError([f"Could not find configuration file {path}"])

        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError([f"Could not parse {path}: {e}"])

        return cls.from_dict(data, base_dir=path.parent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path = Path('.')) -> 'PipelineConfig':
        """
        Build and validate configuration from a parsed YAML mapping.

        Args:
            data: Parsed configuration
            base_dir: Default scripts directory (the config file's directory)

        Raises:
            ConfigurationError: Listing every problem found
        """
        if not isinstance(data, dict):
            raise ConfigurationError([
                f"Configuration must be a mapping of sections (found {type(data).__name__})"
            ])
        errors: List[str] = []

        app = _section(data, 'app', errors)
        for tool in REQUIRED_TOOLS:
            if not app.get(tool):
                errors.append(f"Could not find {tool} info in configuration file!")
            elif not Path(str(app[tool])).is_file():
                errors.append(f"Could not find {app[tool]}!")

        picard = app.get('picard')
        if picard and not Path(str(picard)).is_file():
            errors.append(f"Could not find {picard}!")

        scripts = _section(data, 'scripts', errors)
        bin_dir = Path(str(scripts.get('bin_dir') or base_dir))
        for script in REQUIRED_SCRIPTS:
            if not (bin_dir / script).is_file():
                errors.append(f"Could not find {script} in {bin_dir}!")

        genomes = {}
        for name, section in _section(data, 'genomes', errors).items():
            section = section or {}
            if not isinstance(section, dict):
                errors.append(f"Genome section {name} must be a mapping of settings!")
                continue
            genomes[str(name)] = GenomeConfig(
                name=str(name),
                ref_fasta=Path(str(section.get('ref_fasta', ''))),
                bwa_idx=str(section.get('bwa_idx', '')),
                ref_gene=Path(str(section['refGene'])) if section.get('refGene') else None,
            )

        prinseq = _section(data, 'prinseq', errors)
        filters = FilterParams(
            min_qual_mean=_int_option(prinseq, 'prinseq', 'min_qual_mean', 30, errors),
            min_len=_int_option(prinseq, 'prinseq', 'min_len', 50, errors),
            ns_max_p=_int_option(prinseq, 'prinseq', 'ns_max_p', 3, errors),
        )

        other = _section(data, 'other', errors)
        remove_duplicate = _parse_yn(
            other.get('remove_duplicate'), False,
            "remove_duplicate value ({}) must be Y or N(default)", errors,
        )
        realign = _parse_yn(
            other.get('realign_flag'), True,
            "realign_flag ({}) must be Y(default) or N", errors,
        )
        options = AnalysisOptions(
            remove_duplicate=remove_duplicate,
            realign=realign,
            min_mapq=_int_option(other, 'other', 'min_mapq', 20, errors),
            wing_length=_int_option(other, 'other', 'wing_length', 40, errors),
            high_res=bool(other.get('high_res', 0)),
        )

        jobs_data = _section(data, 'jobs', errors)
        defaults = JobSettings()
        jobs = JobSettings(
            poll_interval=_int_option(jobs_data, 'jobs', 'poll_interval', defaults.poll_interval, errors, minimum=1),
            max_runtime=_int_option(jobs_data, 'jobs', 'max_runtime', defaults.max_runtime, errors, minimum=1),
            watchdog_grace=_int_option(jobs_data, 'jobs', 'watchdog_grace', defaults.watchdog_grace, errors),
            cores_per_job=_int_option(jobs_data, 'jobs', 'cores_per_job', defaults.cores_per_job, errors, minimum=1),
            job_name_prefix=str(jobs_data.get('job_name_prefix', defaults.job_name_prefix)),
        )
        unknown = set(jobs_data) - set(JobSettings.__dataclass_fields__)
        if unknown:
            errors.append(f"Unknown jobs settings: {', '.join(sorted(str(k) for k in unknown))}")

        if errors:
            raise ConfigurationError(errors)

        tools = ToolPaths(
            picard=str(picard) if picard else None,
            **{tool: str(app[tool]) for tool in REQUIRED_TOOLS},
        )

        return cls(
            tools=tools,
            bin_dir=bin_dir,
            genomes=genomes,
            filters=filters,
            options=options,
            jobs=jobs,
        )

    def genome(self, name: str) -> GenomeConfig:
        """Return a validated genome section."""
        if name not in self.genomes:
            raise ConfigurationError([f"Could not find {name} genome section of configuration file!"])
        genome = self.genomes[name]
        errors = genome.validate()
        if errors:
            raise ConfigurationError(errors)
        return genome

    def script(self, name: str) -> Path:
        return self.bin_dir / name


def _section(data: Dict[str, Any], name: str, errors: List[str]) -> Dict[str, Any]:
    """Return a top-level section, or an empty one if it is missing or not a mapping."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        errors.append(f"Section {name} must be a mapping of settings!")
        return {}
    return section


def _int_option(section: Dict[str, Any], section_name: str, key: str, default: int,
                errors: List[str], minimum: int = 0) -> int:
    value = section.get(key, default)
    # bool is an int subclass; yes/no is not a number here
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{section_name}.{key} must be an integer (found {value!r})")
        return default
    if value < minimum:
        errors.append(f"{section_name}.{key} must be at least {minimum}")
    return value


def _parse_yn(value, default: bool, message: str, errors: List[str]) -> bool:
    """Parse a Y/N flag. YAML may already have turned yes/no into booleans."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().upper()
    if text not in ('Y', 'N'):
        errors.append(message.format(value))
        return default
    return text == 'Y'


def verify_tools(tools: ToolPaths):
    """
    Check that pysamstats runs.

    Raises:
        ConfigurationError: If `pysamstats --help` fails
    """
    try:
        result = subprocess.run(
            [tools.pysamstats, '--help'],
            capture_output=True, timeout=60
        )
        ok = result.returncode == 0
    except (OSError, subprocess.TimeoutExpired):
        ok = False

    if not ok:
        raise ConfigurationError([
            f"{tools.pysamstats} did not run properly. If there is error importing a module, "
            "please include the module path in environment variable PYTHONPATH."
        ])


CONFIG_TEMPLATE = '''# CRISPR-DAV Configuration Template
# Edit the paths below and run:
#   crispr-dav run --conf <this file> --genome hg19 --region amplicon.bed \\
#     --crispr sites.bed --fastqmap fastq.tsv --sitemap sitemap.tsv

# Required: external tools
app:
  abra: /path/to/abra.jar
  prinseq: /path/to/prinseq-lite.pl
  samtools: /path/to/samtools
  bwa: /path/to/bwa
  java: /path/to/java
  bedtools: /path/to/bedtools
  pysamstats: /path/to/pysamstats
  rscript: /path/to/Rscript
  # picard: /path/to/picard.jar

# Reference genomes, selected with --genome
genomes:
  hg19:
    ref_fasta: /path/to/hg19.fa
    bwa_idx: /path/to/bwa_index/hg19.fa
    refGene: /path/to/hg19_refGene.txt

# Read filtering
prinseq:
  min_qual_mean: 30
  min_len: 50
  ns_max_p: 3

# Analysis options
other:
  remove_duplicate: N
  realign_flag: Y
  min_mapq: 20
  wing_length: 40
  high_res: 0

# Directory with sample.pl, report.pl, crispr2cx.pl and Rscripts/
# (defaults to the directory of this file)
# scripts:
#   bin_dir: /path/to/crispr-dav

# Job dispatch (seconds)
jobs:
  poll_interval: 120
  max_runtime: 172800
  watchdog_grace: 360
  cores_per_job: 2
'''
