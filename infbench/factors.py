from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Optional, Sequence, Union

FACTOR_LABELS = ("probset", "prob", "subprob", "noise", "algo", "algoset")

Label = Optional[str]


def cellify(value: Any) -> list[Label]:
    """Promote a scalar (or ``None``) factor value to a list of labels."""
    if value is None:
        return [None]
    if isinstance(value, str):
        return [value]
    values = list(value)
    if not values:
        return [None]
    return [None if v is None else str(v) for v in values]


def is_empty_label(label: Label) -> bool:
    return label is None or label == ""


def factor_index(name_or_index: Union[str, int]) -> int:
    if isinstance(name_or_index, int):
        if not 0 <= name_or_index < len(FACTOR_LABELS):
            raise ValueError(f"Factor index out of range: {name_or_index}")
        return name_or_index
    key = str(name_or_index).strip().lower()
    if key not in FACTOR_LABELS:
        raise ValueError(
            f"Unknown factor '{name_or_index}'. Expected one of {list(FACTOR_LABELS)}"
        )
    return FACTOR_LABELS.index(key)


@dataclass(frozen=True)
class FactorLabels:
    probset: Label = None
    prob: Label = None
    subprob: Label = None
    noise: Label = None
    algo: Label = None
    algoset: Label = None

    def get(self, dim: int) -> Label:
        return getattr(self, FACTOR_LABELS[dim])

    def with_value(self, dim: int, value: Label) -> "FactorLabels":
        return replace(self, **{FACTOR_LABELS[dim]: value})

    def as_tuple(self) -> tuple[Label, ...]:
        return tuple(self.get(i) for i in range(len(FACTOR_LABELS)))


@dataclass(frozen=True)
class PanelSpec:
    i_fig: int
    i_row: int
    i_col: int
    labels: FactorLabels
    row_label: str
    col_label: str


@dataclass
class PlotPlan:
    factors: list[list[Label]]
    dim_rows: int
    dim_cols: int
    dim_fig: Optional[int]
    dim_layers: int
    fixed: dict[int, Label] = field(default_factory=dict)

    @property
    def n_rows(self) -> int:
        return len(self.factors[self.dim_rows])

    @property
    def n_cols(self) -> int:
        return len(self.factors[self.dim_cols])

    @property
    def n_figs(self) -> int:
        if self.dim_fig is None:
            return 1
        return len(self.factors[self.dim_fig])

    @property
    def n_layers(self) -> int:
        return len(self.factors[self.dim_layers])

    @property
    def layer_labels(self) -> list[Label]:
        return list(self.factors[self.dim_layers])

    @property
    def row_labels(self) -> list[Label]:
        return list(self.factors[self.dim_rows])

    @property
    def col_labels(self) -> list[Label]:
        return list(self.factors[self.dim_cols])

    @property
    def use_two_rows_grid(self) -> bool:
        return self.n_rows == 1

    def grid_shape(self, two_rows: bool = False) -> tuple[int, int]:
        if two_rows and self.use_two_rows_grid:
            return 2, math.ceil(self.n_cols / 2) + 1
        return self.n_rows, self.n_cols + 1

    def panel_slot(self, i_row: int, i_col: int, two_rows: bool = False) -> int:
        """1-based subplot slot of panel (``i_row``, ``i_col``), both 0-based."""
        if two_rows and self.use_two_rows_grid:
            col = i_col + 1
            return col + int(col > math.ceil(self.n_cols / 2))
        return i_row * (self.n_cols + 1) + i_col + 1

    def legend_slot(self, two_rows: bool = False) -> int:
        if two_rows and self.use_two_rows_grid:
            return math.ceil(self.n_cols / 2) + 1
        return self.n_cols + 1

    def base_labels(self, i_fig: int = 0) -> FactorLabels:
        labels = FactorLabels()
        for dim, value in self.fixed.items():
            labels = labels.with_value(dim, value)
        if self.dim_fig is not None:
            labels = labels.with_value(self.dim_fig, self.factors[self.dim_fig][i_fig])
        return labels

    def panels(self, i_fig: int = 0) -> Iterator[PanelSpec]:
        """Panels of figure ``i_fig``, skipping rows and columns with empty labels."""
        base = self.base_labels(i_fig)
        for i_row, row_label in enumerate(self.row_labels):
            if is_empty_label(row_label):
                continue
            for i_col, col_label in enumerate(self.col_labels):
                if is_empty_label(col_label):
                    continue
                labels = base.with_value(self.dim_rows, row_label).with_value(
                    self.dim_cols, col_label
                )
                yield PanelSpec(
                    i_fig=i_fig,
                    i_row=i_row,
                    i_col=i_col,
                    labels=labels,
                    row_label=str(row_label),
                    col_label=str(col_label),
                )

    def layers(self, panel: PanelSpec) -> Iterator[tuple[int, FactorLabels]]:
        for i_layer, value in enumerate(self.layer_labels):
            yield i_layer, panel.labels.with_value(self.dim_layers, value)


def expand_factors(
    factors: Sequence[Any], order: Sequence[Union[str, int]]
) -> PlotPlan:
    """Build the iteration plan for six factor lists and an axis assignment.

    ``order[0]`` is expanded across rows, ``order[1]`` across columns and the
    optional ``order[2]`` across figures. Of the remaining factors, the first
    one with several values becomes the within-panel layer dimension; every
    other unassigned factor is pinned to its first value.
    """
    if len(factors) != len(FACTOR_LABELS):
        raise ValueError(
            f"Expected {len(FACTOR_LABELS)} factors, got {len(factors)}"
        )
    if isinstance(order, (str, int)):
        order = [order]
    if len(order) < 2:
        raise ValueError("order must name at least the row and column factors")
    cells = [cellify(f) for f in factors]

    dim_rows = factor_index(order[0])
    dim_cols = factor_index(order[1])
    dim_fig = factor_index(order[2]) if len(order) > 2 else None
    assigned = [dim_rows, dim_cols] + ([dim_fig] if dim_fig is not None else [])
    if len(set(assigned)) != len(assigned):
        raise ValueError(f"order assigns a factor twice: {list(order)}")

    free = [d for d in range(len(FACTOR_LABELS)) if d not in assigned]
    dim_layers = next((d for d in free if len(cells[d]) > 1), free[0])
    fixed = {d: cells[d][0] for d in free if d != dim_layers}
    return PlotPlan(
        factors=cells,
        dim_rows=dim_rows,
        dim_cols=dim_cols,
        dim_fig=dim_fig,
        dim_layers=dim_layers,
        fixed=fixed,
    )
