from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from infbench.factors import FactorLabels, is_empty_label

SUMMARY_COLUMNS = [
    "problem",
    "subproblem",
    "algorithm",
    "max_fun_evals",
    "final_fun_evals",
    "final_median",
    "final_upper",
    "final_lower",
    "average_alg_time",
    "average_fun_time",
    "fraction_overhead",
]


@dataclass
class LayerSummary:
    xx: np.ndarray
    yy: np.ndarray
    yerr: np.ndarray
    max_fun_evals: float
    average_alg_time: float
    average_fun_time: float
    fraction_overhead: float

    def to_dict(self) -> dict:
        return {
            "xx": [float(v) for v in np.asarray(self.xx).reshape(-1)],
            "yy": [float(v) for v in np.asarray(self.yy).reshape(-1)],
            "yerr": [[float(v) for v in row] for row in np.asarray(self.yerr)],
            "max_fun_evals": float(self.max_fun_evals),
            "average_alg_time": float(self.average_alg_time),
            "average_fun_time": float(self.average_fun_time),
            "fraction_overhead": float(self.fraction_overhead),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "LayerSummary":
        yerr = np.asarray(payload["yerr"], dtype=float)
        return cls(
            xx=np.asarray(payload["xx"], dtype=float),
            yy=np.asarray(payload["yy"], dtype=float),
            yerr=yerr.reshape(2, -1) if yerr.size else np.empty((2, 0)),
            max_fun_evals=float(payload["max_fun_evals"]),
            average_alg_time=float(payload["average_alg_time"]),
            average_fun_time=float(payload["average_fun_time"]),
            fraction_overhead=float(payload["fraction_overhead"]),
        )


SummaryTree = Dict[str, Dict[str, Dict[str, LayerSummary]]]


def summary_keys(
    labels: FactorLabels, algo: str, algoset: str
) -> tuple[str, str, str]:
    """Problem, subproblem and algorithm keys of one layer's summary.

    ``f1_<probset>_<prob>``, ``f2_<SUBPROB>[_<noise>noise]`` and
    ``f3_<algo>_<algoset>``.
    """
    noise = "" if is_empty_label(labels.noise) else f"_{labels.noise}noise"
    field1 = f"f1_{labels.probset or ''}_{labels.prob or ''}"
    field2 = f"f2_{(labels.subprob or '').upper()}{noise}"
    field3 = f"f3_{algo}_{algoset.replace('-', '_')}"
    return field1, field2, field3


def insert_summary(
    tree: SummaryTree, keys: tuple[str, str, str], summary: LayerSummary
) -> None:
    f1, f2, f3 = keys
    tree.setdefault(f1, {}).setdefault(f2, {})[f3] = summary


def iter_summaries(tree: SummaryTree):
    for f1, level2 in tree.items():
        for f2, level3 in level2.items():
            for f3, summary in level3.items():
                yield (f1, f2, f3), summary


def summaries_to_dict(tree: SummaryTree) -> dict:
    payload: dict = {}
    for (f1, f2, f3), summary in iter_summaries(tree):
        payload.setdefault(f1, {}).setdefault(f2, {})[f3] = summary.to_dict()
    return payload


def summaries_from_dict(payload: dict) -> SummaryTree:
    tree: SummaryTree = {}
    for f1, level2 in payload.items():
        for f2, level3 in level2.items():
            for f3, summary in level3.items():
                insert_summary(tree, (f1, f2, f3), LayerSummary.from_dict(summary))
    return tree


def _arrays_close(a: np.ndarray, b: np.ndarray) -> bool:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return a.shape == b.shape and bool(np.allclose(a, b, equal_nan=True))


def _scalars_close(a: float, b: float) -> bool:
    if math.isnan(a) and math.isnan(b):
        return True
    return math.isclose(a, b, rel_tol=1e-9, abs_tol=1e-12)


def summary_equal(a: LayerSummary, b: LayerSummary) -> bool:
    return (
        _arrays_close(a.xx, b.xx)
        and _arrays_close(a.yy, b.yy)
        and _arrays_close(a.yerr, b.yerr)
        and _scalars_close(a.max_fun_evals, b.max_fun_evals)
        and _scalars_close(a.average_alg_time, b.average_alg_time)
        and _scalars_close(a.average_fun_time, b.average_fun_time)
        and _scalars_close(a.fraction_overhead, b.fraction_overhead)
    )


def summaries_equal(a: SummaryTree, b: SummaryTree) -> bool:
    flat_a = dict(iter_summaries(a))
    flat_b = dict(iter_summaries(b))
    if flat_a.keys() != flat_b.keys():
        return False
    return all(summary_equal(flat_a[k], flat_b[k]) for k in flat_a)


def _final(values: np.ndarray) -> Optional[float]:
    values = np.asarray(values, dtype=float).reshape(-1)
    if values.size == 0:
        return None
    return float(values[-1])


@dataclass
class BenchData:
    """Result of a plotting pass."""

    summaries: SummaryTree = field(default_factory=dict)
    options: Any = None
    figures: list = field(default_factory=list)
    skips: Any = None

    def get(self, f1: str, f2: str, f3: str) -> Optional[LayerSummary]:
        return self.summaries.get(f1, {}).get(f2, {}).get(f3)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for (f1, f2, f3), summary in iter_summaries(self.summaries):
            yerr = np.asarray(summary.yerr, dtype=float)
            median = _final(summary.yy)
            upper = _final(yerr[0]) if yerr.size else None
            lower = _final(yerr[1]) if yerr.size else None
            rows.append(
                {
                    "problem": f1[len("f1_") :],
                    "subproblem": f2[len("f2_") :],
                    "algorithm": f3[len("f3_") :],
                    "max_fun_evals": summary.max_fun_evals,
                    "final_fun_evals": _final(summary.xx),
                    "final_median": median,
                    "final_upper": (
                        None if median is None or upper is None else median + upper
                    ),
                    "final_lower": (
                        None if median is None or lower is None else median - lower
                    ),
                    "average_alg_time": summary.average_alg_time,
                    "average_fun_time": summary.average_fun_time,
                    "fraction_overhead": summary.fraction_overhead,
                }
            )
        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
