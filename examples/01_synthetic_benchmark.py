import json
import os
from pathlib import Path

import numpy as np
from infbench import infbench_plot
from infbench.display import finalize_figure

PROBLEMS = {"lumpy": -1.3, "cigar": 0.4}
ALGOS = {"vbmc@acqvar": 0.7, "wsabi@base": 0.9}


def make_run(rng, ln_z_true, decay, ticks, overhead=0.02):
    n = len(ticks)
    errors = 10.0 * decay ** np.arange(1, n + 1) * rng.lognormal(0.0, 0.5, size=n)
    func_time = np.full(n, 0.05)
    elapsed = np.cumsum(func_time + overhead * rng.uniform(0.5, 1.5, size=n))
    return {
        "save_ticks": list(ticks),
        "total_max_fun_evals": max(ticks),
        "ln_z": list(ln_z_true + errors * rng.choice([-1.0, 1.0], size=n)),
        "ln_z_var": list(errors**2),
        "gskl": list(errors / 2.0),
        "ln_z_true": ln_z_true,
        "elapsed_time": list(elapsed),
        "func_time": list(func_time),
        "speedtest": 8.2496,
    }


def write_runs(root, n_runs=10, seed=0):
    rng = np.random.default_rng(seed)
    ticks = list(range(100, 1001, 100))
    for prob, ln_z_true in PROBLEMS.items():
        for dim in (2, 4, 8):
            for algo, decay in ALGOS.items():
                directory = root / "vbmc18" / prob / f"{dim}D" / algo
                directory.mkdir(parents=True, exist_ok=True)
                runs = [
                    make_run(rng, ln_z_true, decay ** (2 / dim), ticks)
                    for _ in range(n_runs)
                ]
                (directory / "runs.json").write_text(json.dumps(runs))


def main():
    os.environ.setdefault("MPLBACKEND", "Agg")
    SCRIPT_DIR = Path(__file__).resolve().parent
    OUT_DIR = SCRIPT_DIR / "out"
    OUT_DIR.mkdir(parents=True, exist_ok=True)

    data_dir = OUT_DIR / "runs"
    write_runs(data_dir)

    benchdata = infbench_plot(
        "vbmc18",
        list(PROBLEMS),
        ["2D", "4D", "8D"],
        None,
        list(ALGOS),
        "base",
        ["prob", "subprob"],
        {"data_dir": str(data_dir), "file_name": str(OUT_DIR / "infbenchdata.json.gz")},
    )
    finalize_figure(benchdata.figures[0], OUT_DIR / "synthetic_ir.png")
    print(benchdata.to_frame().to_string(index=False))


if __name__ == "__main__":
    main()
