from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from infbench.defaults import PlotOptions
from infbench.errors import error_reason, OverheadComputationError, SkipReport
from infbench.history import RunHistory
from infbench.summary import LayerSummary

logger = logging.getLogger(__name__)

# Reference machine speed; per-run timings are scaled by SPEED_REFERENCE / speedtest.
SPEED_REFERENCE = 8.2496

# Quantiles at positions (i - 0.5) / n over the sorted runs.
QUANTILE_METHOD = "hazen"


@dataclass(frozen=True)
class RunOverhead:
    last: int
    average_overhead: float
    fraction_overhead: float
    elapsed_time: float
    function_time: float
    trials: float


def speed_factor(history: RunHistory) -> float:
    speedtest = history.speedtest
    if speedtest is None or not math.isfinite(speedtest) or speedtest <= 0:
        return 1.0
    return SPEED_REFERENCE / float(speedtest)


def run_overhead(history: RunHistory) -> RunOverhead:
    """Overhead of one run, up to the first reset of its elapsed-time counter.

    Raises :class:`OverheadComputationError` when the timing series cannot
    support the computation.
    """
    elapsed = history.elapsed_time
    func_time = history.func_time
    finite = np.flatnonzero(np.isfinite(elapsed))
    if finite.size == 0:
        raise OverheadComputationError("no finite elapsed time recorded")
    last = int(finite[-1])
    resets = np.flatnonzero(np.diff(elapsed[: last + 1]) < 0)
    if resets.size:
        last = int(resets[0])
    if last >= func_time.size:
        raise OverheadComputationError(
            f"function time has {func_time.size} entries, needs {last + 1}"
        )
    if last >= history.save_ticks.size:
        raise OverheadComputationError(
            f"run has {history.save_ticks.size} ticks, needs {last + 1}"
        )

    function_total = float(np.sum(func_time[: last + 1]))
    elapsed_last = float(elapsed[last])
    trials = float(history.save_ticks[last])
    if not math.isfinite(function_total):
        raise OverheadComputationError("function time is not finite")
    if trials <= 0:
        raise OverheadComputationError(f"non-positive evaluation count {trials:g}")

    if function_total > 0:
        fraction = elapsed_last / function_total - 1.0
    else:
        fraction = float("nan")
    factor = speed_factor(history)
    return RunOverhead(
        last=last,
        average_overhead=(elapsed_last - function_total) / trials,
        fraction_overhead=fraction,
        elapsed_time=elapsed_last * factor,
        function_time=function_total * factor,
        trials=trials,
    )


def _iters_per_run(history: RunHistory) -> int:
    calls = history.fun_calls_per_iter
    if not calls:
        return 1
    return len(calls)


def _mean_std(values: Sequence[float]) -> tuple[float, float]:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return float("nan"), float("nan")
    std = float(np.std(arr, ddof=1)) if arr.size > 1 else 0.0
    return float(np.mean(arr)), std


@dataclass
class LayerAggregate:
    """Per-run series of one layer, aligned on a shared evaluation axis."""

    x: np.ndarray
    ln_z: np.ndarray
    errs: np.ndarray
    zscores: np.ndarray
    gskl: np.ndarray
    ln_z_true: np.ndarray
    average_overhead: np.ndarray
    fraction_overhead: np.ndarray
    iters_per_run: np.ndarray
    max_fun_evals: float
    total_elapsed_time: float = 0.0
    total_function_time: float = 0.0
    total_trials: float = 0.0
    n_skipped: int = 0
    skipped: list[str] = field(default_factory=list)

    @property
    def n_runs(self) -> int:
        return int(self.x.shape[0])

    @property
    def average_alg_time(self) -> float:
        if self.total_trials <= 0:
            return float("nan")
        return (self.total_elapsed_time - self.total_function_time) / self.total_trials

    @property
    def average_fun_time(self) -> float:
        if self.total_trials <= 0:
            return float("nan")
        return self.total_function_time / self.total_trials

    @property
    def mean_fraction_overhead(self) -> float:
        finite = self.fraction_overhead[np.isfinite(self.fraction_overhead)]
        if finite.size == 0:
            return float("nan")
        return float(np.mean(finite))

    @property
    def ln_z_reference(self) -> float:
        return float(self.ln_z_true[0]) if self.ln_z_true.size else float("nan")

    def series(self, options: PlotOptions) -> np.ndarray:
        """Per-run values drawn for ``options.plot_type``."""
        if options.plot_type == "gsKL":
            return self.gskl
        if options.absolute_plot:
            return self.ln_z
        return self.errs


def aggregate_histories(
    histories: Sequence[RunHistory],
    *,
    skips: Optional[SkipReport] = None,
    name: str = "",
) -> Optional[LayerAggregate]:
    """Align runs on the first run's tick axis and compute error and overhead.

    Runs whose overhead cannot be computed, or whose series do not match the
    shared tick axis, are logged and left out. Returns ``None`` when no run
    survives.
    """
    if not histories:
        return None
    ticks = histories[0].save_ticks[histories[0].valid_mask]

    rows: dict[str, list] = {
        k: [] for k in ("x", "ln_z", "errs", "zscores", "gskl", "true")
    }
    average_overhead, fraction_overhead, iters = [], [], []
    totals = {"elapsed": 0.0, "function": 0.0, "trials": 0.0}
    skipped: list[str] = []

    for i, history in enumerate(histories):
        run_name = f"{name}#{i + 1}" if name else f"run {i + 1}"
        ln_z = history.valid("ln_z")
        run_ticks = history.save_ticks[history.valid_mask]
        if ln_z.size != ticks.size or not np.array_equal(run_ticks, ticks):
            logger.warning(
                "Skipping %s: tick axis %s does not match %s",
                run_name,
                run_ticks.tolist(),
                ticks.tolist(),
            )
            skipped.append(run_name)
            if skips is not None:
                skips.add("run", run_name, "tick axis mismatch")
            continue
        try:
            overhead = run_overhead(history)
        except OverheadComputationError as exc:
            logger.warning(
                "Skipping %s: overhead computation failed (%s)", run_name, exc
            )
            skipped.append(run_name)
            if skips is not None:
                skips.add("run", run_name, error_reason(exc))
            continue

        ln_z_var = history.valid("ln_z_var")
        with np.errstate(divide="ignore", invalid="ignore"):
            zscores = (ln_z - history.ln_z_true) / np.sqrt(ln_z_var)
        rows["x"].append(ticks)
        rows["ln_z"].append(ln_z)
        rows["errs"].append(np.abs(ln_z - history.ln_z_true))
        rows["zscores"].append(zscores)
        rows["gskl"].append(history.valid("gskl"))
        rows["true"].append(history.ln_z_true)

        average_overhead.append(overhead.average_overhead)
        fraction_overhead.append(overhead.fraction_overhead)
        iters.append(_iters_per_run(history))
        totals["elapsed"] += overhead.elapsed_time
        totals["function"] += overhead.function_time
        totals["trials"] += overhead.trials

    if not rows["x"]:
        return None

    iters_mean, iters_std = _mean_std(iters)
    overhead_mean, overhead_std = _mean_std(average_overhead)
    logger.info(
        "Average # of algorithm starts per run: %.4g ± %.4g.", iters_mean, iters_std
    )
    logger.info(
        "Average overhead per function call: %.3f ± %.3f.", overhead_mean, overhead_std
    )
    return LayerAggregate(
        x=np.vstack(rows["x"]),
        ln_z=np.vstack(rows["ln_z"]),
        errs=np.vstack(rows["errs"]),
        zscores=np.vstack(rows["zscores"]),
        gskl=np.vstack(rows["gskl"]),
        ln_z_true=np.asarray(rows["true"], dtype=float),
        average_overhead=np.asarray(average_overhead, dtype=float),
        fraction_overhead=np.asarray(fraction_overhead, dtype=float),
        iters_per_run=np.asarray(iters, dtype=float),
        max_fun_evals=float(histories[0].total_max_fun_evals),
        total_elapsed_time=totals["elapsed"],
        total_function_time=totals["function"],
        total_trials=totals["trials"],
        n_skipped=len(skipped),
        skipped=skipped,
    )


def rescale_overhead(
    x: np.ndarray, y: np.ndarray, fraction_overhead: np.ndarray
) -> np.ndarray:
    """Re-sample each run at ``x / (1 + fraction_overhead)``; NaN outside the axis."""
    out = np.array(y, dtype=float, copy=True)
    for i in range(out.shape[0]):
        fraction = float(fraction_overhead[i])
        if not math.isfinite(fraction) or fraction <= -1.0:
            continue
        out[i] = np.interp(
            x[i] / (1.0 + fraction), x[i], y[i], left=np.nan, right=np.nan
        )
    return out


def best_of_bootstrap(
    y: np.ndarray, best_out_of: int, n_samp: int, rng: np.random.Generator
) -> np.ndarray:
    """Per-tick minimum over ``n_samp`` random groups of ``best_out_of`` runs."""
    idx = rng.integers(0, y.shape[0], size=(n_samp, best_out_of))
    return np.fmin.reduce(y[idx], axis=1)


def iteration_statistics(
    x: np.ndarray,
    y: np.ndarray,
    options: PlotOptions,
    rng: Optional[np.random.Generator] = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Median tick axis, central curve and error bars for ``options.method``.

    ``yerr`` has two rows: distance from the curve to the upper bar, then to
    the lower bar.
    """
    x = np.atleast_2d(np.asarray(x, dtype=float))
    y = np.atleast_2d(np.asarray(y, dtype=float))
    if options.best_out_of > 1 and not options.absolute_plot:
        if rng is None:
            rng = np.random.default_rng(options.seed)
        y = best_of_bootstrap(y, options.best_out_of, options.n_samp, rng)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        xx = np.nanmedian(x, axis=0)
        if options.method == "FS":
            solved = np.where(np.isnan(y), np.nan, (y < options.solve_threshold) * 1.0)
            yy = np.nanmean(solved, axis=0)
            n = np.sum(~np.isnan(solved), axis=0)
            if y.shape[0] > 1:
                std = np.nanstd(solved, axis=0, ddof=1)
            else:
                std = np.zeros_like(yy)
            se = np.where(n > 1, std / np.sqrt(np.maximum(n, 1)), 0.0)
            yerr = np.vstack([se, se])
        else:
            yy = np.nanmedian(y, axis=0)
            quartiles = np.nanquantile(y, [0.75, 0.25], axis=0, method=QUANTILE_METHOD)
            yerr = np.abs(quartiles - yy)
    return xx, yy, yerr


def summarize_layer(
    aggregate: LayerAggregate,
    options: PlotOptions,
    *,
    overhead: bool = False,
    rng: Optional[np.random.Generator] = None,
) -> LayerSummary:
    y = aggregate.series(options)
    if overhead:
        y = rescale_overhead(aggregate.x, y, aggregate.fraction_overhead)
        mean, std = _mean_std(aggregate.fraction_overhead)
        logger.info("Fraction overhead: %.3f +/- %.3f.", mean, std)
    xx, yy, yerr = iteration_statistics(aggregate.x, y, options, rng=rng)
    return LayerSummary(
        xx=xx,
        yy=yy,
        yerr=yerr,
        max_fun_evals=aggregate.max_fun_evals,
        average_alg_time=aggregate.average_alg_time,
        average_fun_time=aggregate.average_fun_time,
        fraction_overhead=aggregate.mean_fraction_overhead,
    )
