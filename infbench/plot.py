from __future__ import annotations

import hashlib
import logging
import math
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np
from tqdm.auto import tqdm

from infbench.cache import CacheEntry, composite_key, ResultsCache
from infbench.collect import DirectoryRunCollector, has_overhead_flag, RunCollector
from infbench.defaults import PlotOptions, resolve_options
from infbench.display import PanelRenderer
from infbench.errors import SkipReport
from infbench.factors import (
    FACTOR_LABELS,
    expand_factors,
    FactorLabels,
    is_empty_label,
    PanelSpec,
    PlotPlan,
)
from infbench.stats import aggregate_histories, summarize_layer
from infbench.summary import (
    BenchData,
    insert_summary,
    iter_summaries,
    summary_equal,
    summary_keys,
    SummaryTree,
)

logger = logging.getLogger(__name__)

# Layer factors where an empty label still names runs (no noise, base setting).
OPTIONAL_FACTORS = {FACTOR_LABELS.index("noise"), FACTOR_LABELS.index("algoset")}


def _stable_seed(seed: int, key: str) -> int:
    h = hashlib.sha256(key.encode("utf-8")).digest()
    return (int(seed) + int.from_bytes(h[:4], "little")) % (2**32)


class BenchmarkPlotter:
    """Runs the factorial plotting pass over a :class:`PlotPlan`."""

    def __init__(
        self,
        plan: PlotPlan,
        options: PlotOptions,
        *,
        collector: Optional[RunCollector] = None,
        cache: Optional[ResultsCache] = None,
    ) -> None:
        self.plan = plan
        self.options = options
        self.skips = SkipReport()
        if cache is None:
            cache = ResultsCache.load(options.file_name)
        self.cache = cache
        self.collector = collector or DirectoryRunCollector(
            options.data_dir, skips=self.skips
        )
        self.renderer = PanelRenderer(plan, options)
        self.summaries: SummaryTree = {}
        self.stale_summaries = 0

    def cache_key(self, panel: PanelSpec, layer_label: Optional[str]) -> str:
        key = composite_key(panel.row_label, panel.col_label, layer_label)
        if self.plan.dim_fig is not None:
            fig_label = panel.labels.get(self.plan.dim_fig)
            if not is_empty_label(fig_label):
                key = composite_key(fig_label, key, None)[:-1]
        return key

    def load_entry(
        self, key: str, panel: PanelSpec, labels: FactorLabels
    ) -> CacheEntry:
        entry = self.cache.get(key)
        if entry is not None:
            return entry
        logger.info(
            "Collecting files: %s@%s@%s",
            panel.row_label,
            panel.col_label,
            labels.get(self.plan.dim_layers) or "",
        )
        entry = CacheEntry.from_collection(self.collector.collect(labels))
        self.cache.put(key, entry)
        return entry

    def plot_panel(self, panel: PanelSpec) -> None:
        ax = self.renderer.panel_axes(panel)
        xx = None
        ln_z_true = math.nan
        n_unlabeled = 0
        for i_layer, labels in self.plan.layers(panel):
            layer_label = labels.get(self.plan.dim_layers)
            key = self.cache_key(panel, layer_label)
            if (
                is_empty_label(layer_label)
                and self.plan.dim_layers not in OPTIONAL_FACTORS
            ):
                self.skips.add("layer", key, "empty label")
                n_unlabeled += 1
                continue

            entry = self.load_entry(key, panel, labels)
            if not entry.histories:
                self.skips.add("layer", key, "no run histories")
                continue
            aggregate = aggregate_histories(
                entry.histories, skips=self.skips, name=key
            )
            if aggregate is None:
                self.skips.add("layer", key, "no valid runs")
                continue

            rng = np.random.default_rng(_stable_seed(self.options.seed, key))
            summary = summarize_layer(
                aggregate,
                self.options,
                overhead=has_overhead_flag(entry.algoset),
                rng=rng,
            )
            keys = summary_keys(labels, entry.algo, entry.algoset)
            insert_summary(self.summaries, keys, summary)
            stored = self.cache.stored_summary(*keys)
            if stored is not None and not summary_equal(stored, summary):
                self.stale_summaries += 1

            self.renderer.plot_layer(ax, i_layer, summary)
            xx = summary.xx
            ln_z_true = aggregate.ln_z_reference
        if n_unlabeled and n_unlabeled == self.plan.n_layers:
            logger.warning(
                "Panel %s@%s is empty: every %s label is empty.",
                panel.row_label,
                panel.col_label,
                FACTOR_LABELS[self.plan.dim_layers],
            )
        self.renderer.finalize_panel(ax, panel, xx, ln_z_true)

    def run(self) -> BenchData:
        figures = []
        for i_fig in range(self.plan.n_figs):
            figure = self.renderer.new_figure(i_fig)
            panels = list(self.plan.panels(i_fig))
            desc = f"Figure {i_fig + 1}/{self.plan.n_figs}"
            for panel in tqdm(panels, desc=desc, unit="panel", leave=False):
                self.plot_panel(panel)
            self.renderer.draw_legend()
            figures.append(figure)

        if self.stale_summaries:
            logger.warning(
                "%s stored summary statistic(s) were out of date; recomputed.",
                self.stale_summaries,
            )
        for keys, summary in iter_summaries(self.summaries):
            insert_summary(self.cache.summaries, keys, summary)
        if self.options.save_cache:
            self.cache.save()
        if self.skips:
            self.skips.log(logger)
        return BenchData(
            summaries=self.summaries,
            options=self.options,
            figures=figures,
            skips=self.skips,
        )


def infbench_plot(
    probset: Any,
    prob: Any,
    subprob: Any,
    noise: Any,
    algo: Any,
    algoset: Any,
    order: Sequence[Union[str, int]],
    options: Union[Mapping[str, Any], PlotOptions, None] = None,
    *,
    collector: Optional[RunCollector] = None,
    cache: Optional[ResultsCache] = None,
) -> BenchData:
    """Factorially plot inference benchmark results.

    Each of ``probset``, ``prob``, ``subprob``, ``noise``, ``algo`` and
    ``algoset`` is a label or a list of labels. ``order[0]`` names the factor
    expanded across rows, ``order[1]`` the one across columns and the optional
    ``order[2]`` the one across figures; the remaining factor with several
    values is compared within each panel.

    Example::

        infbench_plot("vbmc18", ["lumpy", "cigar"], ["2D", "4D", "8D"], None,
                      ["vbmc@acqvar", "wsabi"], "base", ["prob", "subprob"])

    plots ``lumpy`` on the first row and ``cigar`` on the second, one column
    per dimension, each panel comparing two algorithms.
    """
    resolved = resolve_options(options)
    plan = expand_factors([probset, prob, subprob, noise, algo, algoset], order)
    logger.debug(
        "Plot plan: %s figure(s) x %s row(s) x %s column(s) x %s layer(s)",
        plan.n_figs,
        plan.n_rows,
        plan.n_cols,
        plan.n_layers,
    )
    plotter = BenchmarkPlotter(plan, resolved, collector=collector, cache=cache)
    return plotter.run()
