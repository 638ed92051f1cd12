__version__ = "0.1.0"

from infbench.cache import composite_key, ResultsCache
from infbench.collect import Collection, DirectoryRunCollector
from infbench.defaults import PlotOptions, resolve_options
from infbench.factors import expand_factors, FACTOR_LABELS, FactorLabels, PlotPlan
from infbench.history import RunHistory
from infbench.plot import BenchmarkPlotter, infbench_plot
from infbench.stats import aggregate_histories, iteration_statistics
from infbench.summary import BenchData, LayerSummary

__all__ = [
    "BenchData",
    "BenchmarkPlotter",
    "Collection",
    "DirectoryRunCollector",
    "FACTOR_LABELS",
    "FactorLabels",
    "LayerSummary",
    "PlotOptions",
    "PlotPlan",
    "ResultsCache",
    "RunHistory",
    "aggregate_histories",
    "composite_key",
    "expand_factors",
    "infbench_plot",
    "iteration_statistics",
    "resolve_options",
]
