import shutil

import numpy as np

from infbench.cache import ResultsCache
from infbench.collect import Collection
from infbench.history import RunHistory
from infbench.plot import infbench_plot
from infbench.summary import insert_summary, LayerSummary, summaries_equal
from infbench.utils import write_table_with_md

ALGOS = ["vbmc@acqvar", "wsabi"]


def _populate(write_runs, make_run, *, skip=()):
    for prob in ("lumpy", "cigar"):
        for subprob in ("2D", "4D"):
            for algo_dir in ("vbmc@acqvar", "wsabi@base"):
                if (prob, subprob, algo_dir) in skip:
                    continue
                runs = [make_run(errors=(e, e / 2, e / 10)) for e in (0.5, 1.0, 1.5)]
                write_runs("vbmc18", prob, subprob, algo_dir, runs)


def _options(write_runs, tmp_path, **extra):
    options = {
        "data_dir": str(write_runs.root),
        "file_name": str(tmp_path / "cache.json.gz"),
    }
    options.update(extra)
    return options


def test_full_grid(write_runs, make_run, tmp_path):
    _populate(write_runs, make_run, skip={("cigar", "4D", "wsabi@base")})
    benchdata = infbench_plot(
        "vbmc18",
        ["lumpy", "cigar"],
        ["2D", "4D"],
        None,
        ALGOS,
        "base",
        ["prob", "subprob"],
        _options(write_runs, tmp_path),
    )
    assert len(benchdata.figures) == 1
    assert len(benchdata.figures[0].axes) == 5

    summary = benchdata.get("f1_vbmc18_lumpy", "f2_2D", "f3_vbmc_acqvar")
    np.testing.assert_allclose(summary.xx, [100, 200, 300])
    np.testing.assert_allclose(summary.yy, [1.0, 0.5, 0.1])
    assert benchdata.get("f1_vbmc18_cigar", "f2_4D", "f3_wsabi_base") is None
    assert benchdata.get("f1_vbmc18_cigar", "f2_4D", "f3_vbmc_acqvar") is not None
    assert benchdata.skips.total("layer") == 1
    assert not (tmp_path / "cache.json.gz").exists()

    frame = benchdata.to_frame()
    assert len(frame) == 7
    assert set(frame["algorithm"]) == {"vbmc_acqvar", "wsabi_base"}
    np.testing.assert_allclose(frame["final_median"], 0.1)

    write_table_with_md(frame, tmp_path / "tables" / "summary.csv")
    assert (tmp_path / "tables" / "summary.md").read_text().startswith("| problem")


def test_empty_labels_skip_rows(write_runs, make_run, tmp_path):
    _populate(write_runs, make_run)
    benchdata = infbench_plot(
        "vbmc18",
        ["lumpy", ""],
        ["2D", "4D"],
        None,
        ALGOS,
        "base",
        ["prob", "subprob"],
        _options(write_runs, tmp_path),
    )
    assert len(benchdata.figures[0].axes) == 3
    assert set(benchdata.summaries) == {"f1_vbmc18_lumpy"}


def test_cache_is_reused_after_run_files_disappear(write_runs, make_run, tmp_path):
    _populate(write_runs, make_run)
    args = ("vbmc18", ["lumpy", "cigar"], ["2D", "4D"], None, ALGOS, "base")
    options = _options(write_runs, tmp_path, save_cache=True, best_out_of=2)

    first = infbench_plot(*args, ["prob", "subprob"], options)
    assert (tmp_path / "cache.json.gz").exists()
    shutil.rmtree(write_runs.root)

    second = infbench_plot(*args, ["prob", "subprob"], options)
    assert summaries_equal(first.summaries, second.summaries)
    assert not second.skips


def test_noise_layers_include_noiseless_runs(write_runs, make_run, tmp_path):
    write_runs("vbmc18", "lumpy", "2D", "vbmc@base", [make_run()])
    write_runs("vbmc18", "lumpy", "2D", "vbmc@base", [make_run()], noise="me")
    benchdata = infbench_plot(
        "vbmc18",
        "lumpy",
        "2D",
        [None, "me"],
        "vbmc",
        None,
        ["prob", "subprob"],
        _options(write_runs, tmp_path),
    )
    level2 = benchdata.summaries["f1_vbmc18_lumpy"]
    assert set(level2) == {"f2_2D", "f2_2D_menoise"}


def test_overhead_setting_rescales_runs(write_runs, make_run, tmp_path):
    write_runs("p", "q", "2D", "algo@base", [make_run(overhead=0.5)] * 2)
    benchdata = infbench_plot(
        "p",
        "q",
        "2D",
        None,
        ["algo", "algo@base_overhead"],
        None,
        ["prob", "subprob"],
        _options(write_runs, tmp_path),
    )
    plain = benchdata.get("f1_p_q", "f2_2D", "f3_algo_base")
    stretched = benchdata.get("f1_p_q", "f2_2D", "f3_algo_base_overhead")
    assert stretched.fraction_overhead == plain.fraction_overhead == 1.0
    np.testing.assert_allclose(plain.yy, [1.0, 0.5, 0.1])
    assert np.isnan(stretched.yy[0])
    np.testing.assert_allclose(stretched.yy[1:], [1.0, 0.75])


def test_figure_factor_produces_one_figure_per_label(write_runs, make_run, tmp_path):
    _populate(write_runs, make_run)
    benchdata = infbench_plot(
        "vbmc18",
        ["lumpy", "cigar"],
        ["2D", "4D"],
        None,
        ["vbmc@acqvar", "wsabi@base"],
        None,
        ["prob", "subprob", "algo"],
        _options(write_runs, tmp_path, two_rows=True),
    )
    assert len(benchdata.figures) == 2
    assert benchdata.figures[1]._suptitle.get_text() == "wsabi@base"
    assert benchdata.get("f1_vbmc18_cigar", "f2_4D", "f3_wsabi_base") is not None


class _MemoryCollector:
    def __init__(self, runs):
        self.runs = runs
        self.calls = []

    def collect(self, labels):
        self.calls.append(labels)
        histories = [RunHistory.from_dict(r) for r in self.runs.get(labels.algo, [])]
        return Collection(histories=histories, algo=labels.algo, algoset="base")


def test_custom_collector_and_stale_summary_warning(make_run, tmp_path, caplog):
    collector = _MemoryCollector({"a": [make_run()], "b": [make_run(errors=(2, 2, 2))]})
    cache = ResultsCache(tmp_path / "unused.json.gz")
    stale = LayerSummary(
        xx=np.array([1.0]),
        yy=np.array([1.0]),
        yerr=np.zeros((2, 1)),
        max_fun_evals=1.0,
        average_alg_time=0.0,
        average_fun_time=0.0,
        fraction_overhead=0.0,
    )
    insert_summary(cache.summaries, ("f1_s_p", "f2_1D", "f3_a_base"), stale)

    caplog.set_level("WARNING", logger="infbench.plot")
    benchdata = infbench_plot(
        "s",
        "p",
        ["1D", "2D"],
        None,
        ["a", "b"],
        None,
        ["prob", "subprob"],
        collector=collector,
        cache=cache,
    )
    assert len(collector.calls) == 4
    np.testing.assert_allclose(
        benchdata.get("f1_s_p", "f2_2D", "f3_b_base").yy, [2.0, 2.0, 2.0]
    )
    assert "out of date" in caplog.text
    assert cache.stored_summary("f1_s_p", "f2_1D", "f3_a_base") is not stale


def test_scalar_fun_calls_per_iter_survives_cache_save(write_runs, make_run, tmp_path):
    record = make_run()
    record.pop("fun_calls_per_iter")
    record["FunCallsPerIter"] = 12
    write_runs("p", "q", "2D", "algo@base", [record, record])
    options = _options(write_runs, tmp_path, save_cache=True)

    order = ["prob", "subprob"]
    first = infbench_plot("p", "q", "2D", None, "algo", None, order, options)
    reloaded = ResultsCache.load(tmp_path / "cache.json.gz")
    assert reloaded.loaded
    assert reloaded.get("q_2D_p").histories[0].fun_calls_per_iter == [12]
    assert summaries_equal(first.summaries, reloaded.summaries)


def test_all_layers_unlabeled_warns(tmp_path, caplog):
    collector = _MemoryCollector({})
    caplog.set_level("WARNING", logger="infbench.plot")
    benchdata = infbench_plot(
        None,
        "lumpy",
        "2D",
        None,
        "a",
        None,
        ["prob", "subprob"],
        collector=collector,
        cache=ResultsCache(tmp_path / "unused.json.gz"),
    )
    assert collector.calls == []
    assert benchdata.skips.total("layer") == 1
    assert "every probset label is empty" in caplog.text
