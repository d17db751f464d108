"""
Data model for an amplicon experiment.

The model is built once from the region, target-site and sample-map files
and is not modified afterwards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple


NO_TRANSCRIPT = "-"


@dataclass(frozen=True)
class Amplicon:
    """The single sequenced region of a run (BED coordinates, 0-based, end exclusive)."""
    chrom: str
    start: int
    end: int
    gene_symbol: str
    transcript_id: str
    strand: str

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def has_transcript(self) -> bool:
        return bool(self.transcript_id) and self.transcript_id != NO_TRANSCRIPT

    def contains(self, pos: int) -> bool:
        """Inclusive on both ends, so a site may touch either amplicon edge."""
        return self.start <= pos <= self.end


@dataclass(frozen=True)
class HdrEdit:
    """A desired base after homology-directed repair (1-based position, + strand)."""
    position: int
    base: str

    def __str__(self) -> str:
        return f"{self.position}{self.base}"


@dataclass(frozen=True)
class TargetSite:
    """A guide target site inside the amplicon."""
    name: str
    chrom: str
    start: int
    end: int
    sequence: str
    strand: str
    hdr_edits: Tuple[HdrEdit, ...] = ()

    @property
    def has_hdr(self) -> bool:
        return bool(self.hdr_edits)

    @property
    def hdr_string(self) -> str:
        return ",".join(str(e) for e in self.hdr_edits)


@dataclass
class Sample:
    """A sample and its validated read files."""
    name: str
    fastqs: List[Path]

    @property
    def read1(self) -> Path:
        return self.fastqs[0]

    @property
    def read2(self) -> Optional[Path]:
        return self.fastqs[1] if len(self.fastqs) > 1 else None

    @property
    def is_paired(self) -> bool:
        return self.read2 is not None

    def fastq_string(self) -> str:
        return ",".join(str(f) for f in self.fastqs)


@dataclass
class ExperimentDesign:
    """Amplicon, target sites and the many-to-many sample/site relation.

    Attributes:
        amplicon: The run's amplicon
        targets: Target site name -> TargetSite
        sample_targets: Sample name -> names of its target sites
        target_samples: Target site name -> names of the samples covering it
    """
    amplicon: Amplicon
    targets: Dict[str, TargetSite]
    sample_targets: Dict[str, Set[str]] = field(default_factory=dict)
    target_samples: Dict[str, Set[str]] = field(default_factory=dict)

    def add_association(self, sample: str, target: str):
        if target not in self.targets:
            raise KeyError(f"Unknown target site: {target}")
        self.sample_targets.setdefault(sample, set()).add(target)
        self.target_samples.setdefault(target, set()).add(sample)

    @property
    def samples(self) -> List[str]:
        return sorted(self.sample_targets)

    @property
    def sites(self) -> List[str]:
        """Target sites covered by at least one sample, sorted by name."""
        return sorted(self.target_samples)

    def targets_for_sample(self, sample: str) -> List[TargetSite]:
        return [self.targets[name] for name in sorted(self.sample_targets.get(sample, ()))]

    def samples_for_target(self, target: str) -> List[str]:
        return sorted(self.target_samples.get(target, ()))

    def target_by_sequence(self, sequence: str) -> Optional[TargetSite]:
        sequence = sequence.upper()
        for site in self.targets.values():
            if site.sequence == sequence:
                return site
        return None
