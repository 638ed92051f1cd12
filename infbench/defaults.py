from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from infbench.config_cast import (
    choice,
    coerce_options,
    enhance_line_value,
    is_empty,
    optional,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _load_defaults() -> Dict[str, Any]:
    path = resources.files("infbench.configs") / "options.yaml"
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def default_options() -> Dict[str, Any]:
    data = copy.deepcopy(_load_defaults())
    data.pop("style", None)
    return data


@dataclass(frozen=True)
class LineStyle:
    linestyle: str
    color: Tuple[float, float, float]


@dataclass(frozen=True)
class PlotOptions:
    best_out_of: int = 1
    error_bar: Optional[bool] = None
    num_zero: float = 1e-8
    method: str = "IR"
    solve_threshold: float = 1e-6
    file_name: str = "./infbenchdata.json.gz"
    n_samp: int = 5000
    two_rows: bool = False
    enhance_line: Union[str, int] = "first"
    plot_type: str = "lnZ"
    ylim_max: float = 100.0
    absolute_plot: bool = False
    display_fval: bool = False
    data_dir: str = "."
    save_cache: bool = False
    seed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def replace(self, **changes: Any) -> "PlotOptions":
        return resolve_options({**self.to_dict(), **changes})


OPTIONS_SCHEMA = {
    "best_out_of": int,
    "error_bar": optional(bool),
    "num_zero": float,
    "method": choice("IR", "FS"),
    "solve_threshold": float,
    "file_name": str,
    "n_samp": int,
    "two_rows": bool,
    "enhance_line": enhance_line_value,
    "plot_type": choice("lnZ", "gsKL"),
    "ylim_max": float,
    "absolute_plot": bool,
    "display_fval": bool,
    "data_dir": str,
    "save_cache": bool,
    "seed": int,
}


def resolve_options(
    options: Union[Mapping[str, Any], PlotOptions, None] = None, **overrides: Any
) -> PlotOptions:
    """Fill every option the caller left missing or empty with its default.

    ``options`` may be a mapping, an existing :class:`PlotOptions` or ``None``;
    keyword ``overrides`` take precedence. Keys are case and underscore
    insensitive, so ``NumZero`` and ``num_zero`` name the same option.
    """
    if isinstance(options, PlotOptions):
        options = options.to_dict()
    given: Dict[str, Any] = {}
    for key, value in {**dict(options or {}), **overrides}.items():
        name = _normalize_key(key)
        if name is None:
            logger.debug("Ignoring unknown plot option %r", key)
            continue
        given[name] = value

    defaults = default_options()
    merged: Dict[str, Any] = {}
    for name in OPTIONS_SCHEMA:
        value = given.get(name)
        if is_empty(value):
            merged[name] = defaults.get(name)
            continue
        merged[name] = value

    coerced = coerce_options(merged, OPTIONS_SCHEMA, defaults)
    if coerced["best_out_of"] < 1:
        logger.warning("best_out_of must be >= 1, got %s", coerced["best_out_of"])
        coerced["best_out_of"] = defaults["best_out_of"]
    if coerced["n_samp"] < 1:
        coerced["n_samp"] = defaults["n_samp"]
    return PlotOptions(**coerced)


_KEY_LOOKUP = {name.replace("_", ""): name for name in OPTIONS_SCHEMA}
_KEY_LOOKUP.update({"filename": "file_name", "nsamp": "n_samp"})


def _normalize_key(key: str) -> Optional[str]:
    return _KEY_LOOKUP.get(str(key).replace("_", "").replace("-", "").lower())


def load_options_file(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")
    payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"Options file must contain a mapping: {path}")
    return payload


def line_styles() -> list[LineStyle]:
    style = _load_defaults().get("style", {})
    styles = list(style.get("line_styles") or ["-"])
    colors = [tuple(float(c) for c in rgb) for rgb in style.get("line_colors") or []]
    if not colors:
        colors = [(0.0, 0.0, 0.0)]
    n = max(len(styles), len(colors))
    return [
        LineStyle(linestyle=styles[i % len(styles)], color=colors[i % len(colors)])
        for i in range(n)
    ]


def layer_style(index: int) -> LineStyle:
    """Style for the 0-based layer ``index``; the table repeats when exhausted."""
    table = line_styles()
    return table[index % len(table)]


def enhanced_layers(n_layers: int, options: PlotOptions) -> set[int]:
    """0-based indices of the layers drawn with a thick line."""
    enhance = options.enhance_line
    if n_layers <= 0 or enhance == "none":
        return set()
    if enhance == "first":
        return {0}
    if enhance == "last":
        return {n_layers - 1}
    index = int(enhance) - 1
    if 0 <= index < n_layers:
        return {index}
    return set()
