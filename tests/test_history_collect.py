import gzip
import json

import numpy as np
import pytest

from infbench.collect import (
    DirectoryRunCollector,
    has_overhead_flag,
    split_algorithm,
    subproblem_dirname,
)
from infbench.errors import RunFileError, SkipReport
from infbench.factors import FactorLabels
from infbench.history import read_run_file, RunHistory


def test_from_dict_accepts_harness_field_names():
    history = RunHistory.from_dict(
        {
            "SaveTicks": [10, 20, 30],
            "TotalMaxFunEvals": 20,
            "lnZpost_true": -1.5,
            "Output": {"lnZs": [-1.0, -1.4, -1.5], "gsKL": [2.0, 1.0]},
            "D": 3,
        }
    )
    assert history.n_dims == 3
    assert history.ln_z_true == -1.5
    np.testing.assert_allclose(history.valid("ln_z"), [-1.0, -1.4])
    np.testing.assert_allclose(history.valid("gskl"), [2.0, 1.0])


def test_valid_pads_short_series_with_nan():
    history = RunHistory.from_dict(
        {"save_ticks": [1, 2, 3], "ln_z": [0.0, 0.0, 0.0], "ln_z_true": 0.0}
    )
    assert np.isinf(history.total_max_fun_evals)
    assert np.isnan(history.valid("gskl")).all()
    assert history.valid("gskl").shape == (3,)


def test_from_dict_requires_core_fields():
    with pytest.raises(RunFileError):
        RunHistory.from_dict({"save_ticks": [1]})


def test_read_run_file_variants(tmp_path, make_run):
    single = tmp_path / "single.json"
    single.write_text(json.dumps(make_run()))
    listed = tmp_path / "listed.json"
    listed.write_text(json.dumps([make_run(), make_run()]))
    wrapped = tmp_path / "wrapped.json.gz"
    with gzip.open(wrapped, "wt", encoding="utf-8") as handle:
        json.dump({"runs": [make_run()] * 3}, handle)

    assert len(read_run_file(single)) == 1
    assert len(read_run_file(listed)) == 2
    assert len(read_run_file(wrapped)) == 3


def test_read_run_file_rejects_garbage(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json")
    with pytest.raises(RunFileError):
        read_run_file(path)
    path.write_text("[1, 2]")
    with pytest.raises(RunFileError):
        read_run_file(path)


def test_split_algorithm():
    assert split_algorithm("vbmc@acqvar", "base") == ("vbmc", "acqvar")
    assert split_algorithm("wsabi", None) == ("wsabi", "base")
    assert split_algorithm("wsabi", "ldet") == ("wsabi", "ldet")


def test_overhead_flag_and_subproblem_dir():
    assert has_overhead_flag("acqvar_overhead")
    assert not has_overhead_flag("_overhead")
    assert not has_overhead_flag("base")
    assert subproblem_dirname("4D", None) == "4D"
    assert subproblem_dirname("4D", "me") == "4D_menoise"


def test_collector_reads_layout(write_runs, make_run):
    write_runs("vbmc18", "lumpy", "2D", "vbmc@acqvar", [make_run(), make_run()])
    write_runs("vbmc18", "lumpy", "2D", "vbmc@acqvar", make_run(), name="more")
    write_runs("vbmc18", "lumpy", "2D", "vbmc@base", [make_run()], noise="me")

    collector = DirectoryRunCollector(write_runs.root)
    labels = FactorLabels("vbmc18", "lumpy", "2D", None, "vbmc@acqvar", "base")
    collection = collector.collect(labels)
    assert len(collection) == 3
    assert (collection.algo, collection.algoset) == ("vbmc", "acqvar")
    assert not collection.overhead

    noisy = collector.collect(FactorLabels("vbmc18", "lumpy", "2D", "me", "vbmc", None))
    assert len(noisy) == 1


def test_collector_overhead_setting_reads_base_runs(write_runs, make_run):
    write_runs("p", "q", "2D", "algo@fast", [make_run()])
    collector = DirectoryRunCollector(write_runs.root)
    labels = FactorLabels("p", "q", "2D", None, "algo", "fast_overhead")
    collection = collector.collect(labels)
    assert collection.overhead
    assert collection.algoset == "fast_overhead"
    assert len(collection) == 1


def test_collector_skips_bad_files(write_runs, make_run):
    good = write_runs("p", "q", "2D", "algo@base", [make_run()])
    (good.parent / "broken.json").write_text("nope")
    skips = SkipReport()
    collector = DirectoryRunCollector(write_runs.root, skips=skips)

    collection = collector.collect(FactorLabels("p", "q", "2D", None, "algo", "base"))
    assert len(collection) == 1
    assert skips.total("run file") == 1


def test_collector_missing_directory_is_empty(tmp_path):
    collector = DirectoryRunCollector(tmp_path)
    assert len(collector.collect(FactorLabels("p", "q", "2D", None, "a", None))) == 0


def test_scalar_fun_calls_per_iter_is_normalized(make_run):
    record = make_run()
    record.pop("fun_calls_per_iter")
    record["FunCallsPerIter"] = 12
    history = RunHistory.from_dict(record)
    assert history.fun_calls_per_iter == [12]
    assert history.to_dict()["fun_calls_per_iter"] == [12]
    assert RunHistory.from_dict(history.to_dict()).fun_calls_per_iter == [12]
