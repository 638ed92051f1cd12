from __future__ import annotations

import gzip
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import numpy as np

from infbench.errors import RunFileError

logger = logging.getLogger(__name__)

# Field names written by the benchmarking harness, mapped to ours.
_HARNESS_ALIASES = {
    "D": "n_dims",
    "SaveTicks": "save_ticks",
    "TotalMaxFunEvals": "total_max_fun_evals",
    "lnZpost_true": "ln_z_true",
    "FunCallsPerIter": "fun_calls_per_iter",
    "ElapsedTime": "elapsed_time",
    "FuncTime": "func_time",
    "lnZs": "ln_z",
    "lnZs_var": "ln_z_var",
    "gsKL": "gskl",
}
_ARRAY_FIELDS = ("save_ticks", "ln_z", "ln_z_var", "gskl", "elapsed_time", "func_time")


def _as_array(value: Any) -> np.ndarray:
    if value is None:
        return np.empty(0, dtype=float)
    arr = np.asarray(value, dtype=float)
    return arr.reshape(-1)


def _to_list(arr: np.ndarray) -> list:
    return [float(v) for v in np.asarray(arr, dtype=float).reshape(-1)]


@dataclass
class RunHistory:
    """Per-tick record of one independent benchmark run."""

    save_ticks: np.ndarray
    ln_z: np.ndarray
    ln_z_true: float
    total_max_fun_evals: float = np.inf
    ln_z_var: np.ndarray = field(default_factory=lambda: np.empty(0))
    gskl: np.ndarray = field(default_factory=lambda: np.empty(0))
    elapsed_time: np.ndarray = field(default_factory=lambda: np.empty(0))
    func_time: np.ndarray = field(default_factory=lambda: np.empty(0))
    fun_calls_per_iter: Optional[list] = None
    speedtest: Optional[float] = None
    n_dims: Optional[int] = None

    def __post_init__(self) -> None:
        for name in _ARRAY_FIELDS:
            setattr(self, name, _as_array(getattr(self, name)))
        self.ln_z_true = float(self.ln_z_true)
        self.total_max_fun_evals = float(self.total_max_fun_evals)
        # A one-element array is stored as a bare number by the harness.
        if self.fun_calls_per_iter is not None:
            self.fun_calls_per_iter = (
                np.atleast_1d(np.asarray(self.fun_calls_per_iter)).reshape(-1).tolist()
            )

    @property
    def valid_mask(self) -> np.ndarray:
        return self.save_ticks <= self.total_max_fun_evals

    def valid(self, name: str) -> np.ndarray:
        """Series ``name`` restricted to ticks within the run's budget.

        Series shorter than the tick axis are padded with NaN.
        """
        values = getattr(self, name)
        mask = self.valid_mask
        if values.size < mask.size:
            values = np.concatenate([values, np.full(mask.size - values.size, np.nan)])
        return values[: mask.size][mask]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RunHistory":
        data: dict[str, Any] = {}
        flat = dict(payload)
        output = flat.pop("Output", None) or flat.pop("output", None) or {}
        flat.update(output)
        for key, value in flat.items():
            name = _HARNESS_ALIASES.get(key, key)
            data[name] = value
        missing = [k for k in ("save_ticks", "ln_z", "ln_z_true") if k not in data]
        if missing:
            raise RunFileError(f"Run record is missing fields: {missing}")
        known = set(cls.__dataclass_fields__)
        extra = sorted(set(data) - known)
        if extra:
            logger.debug("Ignoring unknown run fields: %s", extra)
        kwargs = {k: v for k, v in data.items() if k in known}
        if kwargs.get("total_max_fun_evals") is None:
            kwargs.pop("total_max_fun_evals", None)
        return cls(**kwargs)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            name: _to_list(getattr(self, name)) for name in _ARRAY_FIELDS
        }
        payload["ln_z_true"] = float(self.ln_z_true)
        payload["total_max_fun_evals"] = float(self.total_max_fun_evals)
        payload["fun_calls_per_iter"] = (
            None if self.fun_calls_per_iter is None else list(self.fun_calls_per_iter)
        )
        payload["speedtest"] = None if self.speedtest is None else float(self.speedtest)
        payload["n_dims"] = None if self.n_dims is None else int(self.n_dims)
        return payload


def read_run_file(path: Path) -> list[RunHistory]:
    """Read every run stored in a ``.json`` or ``.json.gz`` file."""
    try:
        if path.name.endswith(".gz"):
            with gzip.open(path, "rt", encoding="utf-8") as handle:
                payload = json.load(handle)
        else:
            payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise RunFileError(f"Cannot read run file {path}: {exc}") from exc

    if isinstance(payload, dict) and "runs" in payload:
        payload = payload["runs"]
    records = payload if isinstance(payload, list) else [payload]
    runs = []
    for record in records:
        if not isinstance(record, dict):
            raise RunFileError(f"Run file {path} holds a non-mapping record")
        try:
            runs.append(RunHistory.from_dict(record))
        except (TypeError, ValueError) as exc:
            raise RunFileError(f"Malformed run record in {path}: {exc}") from exc
    return runs
