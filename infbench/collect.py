from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Union

from infbench.errors import RunFileError, SkipReport
from infbench.factors import FactorLabels, is_empty_label
from infbench.history import read_run_file, RunHistory

logger = logging.getLogger(__name__)

OVERHEAD_SUFFIX = "_overhead"
RUN_FILE_PATTERNS = ("*.json", "*.json.gz")


@dataclass
class Collection:
    histories: list[RunHistory] = field(default_factory=list)
    algo: str = ""
    algoset: str = ""
    overhead: bool = False

    def __len__(self) -> int:
        return len(self.histories)


class RunCollector(Protocol):
    def collect(self, labels: FactorLabels) -> Collection: ...


def split_algorithm(algo: Optional[str], algoset: Optional[str]) -> tuple[str, str]:
    """Resolve ``algo@setting`` labels; the suffix overrides ``algoset``."""
    algo = algo or ""
    algoset = algoset or "base"
    if "@" in algo:
        algo, algoset = algo.split("@", 1)
    return algo, algoset or "base"


def has_overhead_flag(algoset: Optional[str]) -> bool:
    return bool(algoset) and len(algoset) > len(OVERHEAD_SUFFIX) and algoset.endswith(
        OVERHEAD_SUFFIX
    )


def subproblem_dirname(subprob: Optional[str], noise: Optional[str]) -> str:
    name = subprob or ""
    if not is_empty_label(noise):
        name = f"{name}_{noise}noise"
    return name


class DirectoryRunCollector:
    """Read run files from ``root/<probset>/<prob>/<subprob>/<algo>@<algoset>/``.

    A non-empty noise label is appended to the subproblem directory as
    ``<subprob>_<noise>noise``.
    """

    def __init__(
        self, root: Union[str, Path], *, skips: Optional[SkipReport] = None
    ) -> None:
        self.root = Path(root)
        self.skips = skips

    def run_dir(self, labels: FactorLabels, algo: str, algoset: str) -> Path:
        return (
            self.root
            / (labels.probset or "")
            / (labels.prob or "")
            / subproblem_dirname(labels.subprob, labels.noise)
            / f"{algo}@{algoset}"
        )

    def run_files(self, directory: Path) -> list[Path]:
        if not directory.is_dir():
            return []
        files: set[Path] = set()
        for pattern in RUN_FILE_PATTERNS:
            files.update(p for p in directory.glob(pattern) if p.is_file())
        return sorted(files)

    def collect(self, labels: FactorLabels) -> Collection:
        algo, algoset = split_algorithm(labels.algo, labels.algoset)
        overhead = has_overhead_flag(algoset)
        base_algoset = algoset[: -len(OVERHEAD_SUFFIX)] if overhead else algoset

        directory = self.run_dir(labels, algo, base_algoset)
        files = self.run_files(directory)
        if not files:
            logger.info("No run files found in %s", directory)

        histories: list[RunHistory] = []
        for path in files:
            try:
                histories.extend(read_run_file(path))
            except RunFileError as exc:
                logger.warning("Skipping run file: %s", exc)
                if self.skips is not None:
                    self.skips.add("run file", str(path), type(exc).__name__)
        return Collection(
            histories=histories, algo=algo, algoset=algoset, overhead=overhead
        )
