from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

_IS_CI = bool(os.getenv("CI"))
_SHOW_CUSTOM = True
_TOTAL_TESTS = 0
_CURRENT_TEST = 0


def _emit(message: str) -> None:
    # Write to the real stdout to avoid pytest capture hiding progress output.
    print(message, file=sys.__stdout__, flush=True)


def pytest_configure(config):
    global _SHOW_CUSTOM
    if _IS_CI:
        _SHOW_CUSTOM = False
        return
    verbose = getattr(config.option, "verbose", 0) or 0
    _SHOW_CUSTOM = verbose < 1


def pytest_collection_modifyitems(session, config, items):
    global _TOTAL_TESTS
    _TOTAL_TESTS = len(items)


def pytest_sessionstart(session):
    _emit("\n========== infbench Test Suite ==========\n")


def pytest_sessionfinish(session, exitstatus):
    _emit("\n========== Test Session Finished ==========\n")


def pytest_runtest_logstart(nodeid, location):
    if not _SHOW_CUSTOM:
        return
    global _CURRENT_TEST
    _CURRENT_TEST += 1
    progress = f" [{_CURRENT_TEST}/{_TOTAL_TESTS}]" if _TOTAL_TESTS else ""
    _emit(f"\n> Running: {nodeid}{progress}")


def pytest_runtest_logreport(report):
    if not _SHOW_CUSTOM:
        return
    if report.when == "call":
        outcome = report.outcome.upper()
        if getattr(report, "wasxfail", None):
            outcome = "XFAIL" if report.failed else "XPASS"
        _emit(f"\n[{outcome}][{report.when}] {report.nodeid}")
    elif report.failed:
        _emit(f"\n[FAILED][{report.when}] {report.nodeid}")


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")


def _run_record(
    *,
    errors=(1.0, 0.5, 0.1),
    ticks=(100, 200, 300),
    ln_z_true=-2.0,
    overhead=0.0,
    func_time=0.5,
    speedtest=8.2496,
    budget=None,
):
    n = len(ticks)
    func = [func_time] * n
    elapsed = [func_time * (i + 1) + overhead * (i + 1) for i in range(n)]
    return {
        "save_ticks": list(ticks),
        "total_max_fun_evals": budget if budget is not None else max(ticks),
        "ln_z": [ln_z_true + e for e in errors],
        "ln_z_var": [0.25] * n,
        "gskl": [e / 2.0 for e in errors],
        "ln_z_true": ln_z_true,
        "elapsed_time": elapsed,
        "func_time": func,
        "fun_calls_per_iter": [10],
        "speedtest": speedtest,
        "n_dims": 2,
    }


@pytest.fixture
def make_run():
    """Factory for run records; ``errors`` are the |lnZ - lnZ_true| per tick."""
    return _run_record


@pytest.fixture
def write_runs(tmp_path):
    """Write run records under ``tmp_path/runs`` in the collector layout."""
    root = tmp_path / "runs"

    def _write(probset, prob, subprob, algo_dir, records, noise=None, name="runs"):
        subdir = subprob if not noise else f"{subprob}_{noise}noise"
        directory = root / probset / prob / subdir / algo_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.json"
        path.write_text(json.dumps(records))
        return path

    _write.root = root
    return _write
