from __future__ import annotations

import math
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from infbench.defaults import enhanced_layers, layer_style, PlotOptions
from infbench.display.plots import draw_line, legend_label, row_text
from infbench.factors import PanelSpec, PlotPlan
from infbench.summary import LayerSummary

X_TICKS = np.arange(100, 1001, 100)
LOG_Y_TICKS = [0.001, 0.01, 0.1, 1, 10, 100, 1000]
ABSOLUTE_HALF_RANGE = 30.0


class PanelRenderer:
    """Lays out the panel grid of one figure at a time and draws into it."""

    def __init__(self, plan: PlotPlan, options: PlotOptions) -> None:
        self.plan = plan
        self.options = options
        self.figure = None
        self._enhanced = enhanced_layers(plan.n_layers, options)

    @property
    def grid(self) -> tuple[int, int]:
        return self.plan.grid_shape(self.options.two_rows)

    @property
    def show_error_bars(self) -> bool:
        if self.options.error_bar is None:
            return self.plan.n_layers <= 3
        return bool(self.options.error_bar)

    def line_width(self, i_layer: int) -> float:
        return 4.0 if i_layer in self._enhanced else 2.0

    def new_figure(self, i_fig: int = 0):
        n_rows, n_cols = self.grid
        self.figure = plt.figure(figsize=(4.0 * n_cols, 3.2 * n_rows))
        if self.plan.dim_fig is not None:
            label = self.plan.factors[self.plan.dim_fig][i_fig]
            if label:
                self.figure.suptitle(str(label), fontweight="bold")
        return self.figure

    def panel_axes(self, panel: PanelSpec):
        n_rows, n_cols = self.grid
        slot = self.plan.panel_slot(panel.i_row, panel.i_col, self.options.two_rows)
        ax = self.figure.add_subplot(n_rows, n_cols, slot)
        ax.cla()
        return ax

    def plot_layer(self, ax, i_layer: int, summary: LayerSummary):
        yerr = summary.yerr if self.show_error_bars else None
        return draw_line(
            ax,
            summary.xx,
            summary.yy,
            layer_style(i_layer),
            linewidth=self.line_width(i_layer),
            yerr=yerr,
        )

    def y_label(self) -> str:
        if self.options.method == "FS":
            return "Fraction solved"
        if self.options.plot_type == "gsKL":
            return "Median gsKL"
        if self.options.absolute_plot:
            return "Median lnZ"
        return "Median IR"

    def _show_x_label(self, panel: PanelSpec) -> bool:
        if self.options.two_rows and self.plan.use_two_rows_grid:
            return panel.i_col + 1 > math.ceil(self.plan.n_cols / 2)
        return panel.i_row == self.plan.n_rows - 1

    def finalize_panel(
        self,
        ax,
        panel: PanelSpec,
        xx: Optional[np.ndarray],
        ln_z_true: float,
    ) -> None:
        """Titles, labels, axis scaling and the ground-truth reference line."""
        options = self.options
        if panel.i_row == 0:
            title = panel.col_label
            if options.display_fval and math.isfinite(ln_z_true):
                title += f" ($\\ln Z_{{true}}$ = {ln_z_true:.2f})"
            ax.set_title(title)
        if panel.i_col == 0:
            ax.set_ylabel(self.y_label())
            ax.text(
                -0.35,
                0.9,
                row_text(panel.row_label),
                transform=ax.transAxes,
                fontweight="bold",
                horizontalalignment="center",
            )

        xlims = None
        if xx is not None and np.size(xx):
            xlims = (float(np.nanmin(xx)), float(np.nanmax(xx)))
            if xlims[1] > xlims[0]:
                ax.set_xlim(*xlims)
                ticks = X_TICKS[(X_TICKS >= xlims[0]) & (X_TICKS <= xlims[1])]
                if ticks.size >= 2:
                    ax.set_xticks(ticks)

        log_scale = False
        if options.method == "FS":
            ax.set_ylim(0.0, 1.0)
            ax.set_yticks([0.0, 0.5, 1.0])
            ax.set_yticklabels(["0", "0.5", "1"])
        elif options.absolute_plot:
            if math.isfinite(ln_z_true):
                ax.set_ylim(
                    ln_z_true - ABSOLUTE_HALF_RANGE, ln_z_true + ABSOLUTE_HALF_RANGE
                )
        else:
            log_scale = True
            ax.set_yscale("log")
            ax.set_ylim(options.num_zero, options.ylim_max)
            ticks = [
                t for t in LOG_Y_TICKS if options.num_zero <= t <= options.ylim_max
            ]
            if ticks:
                ax.set_yticks(ticks)
                ax.set_yticklabels([f"{t:g}" for t in ticks])
            ax.minorticks_off()

        ax.tick_params(direction="out", length=6, labelsize=12)
        if self._show_x_label(panel):
            ax.set_xlabel("Fun evals")
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)

        if xlims is not None and math.isfinite(ln_z_true):
            if not log_scale or ln_z_true > 0:
                ax.plot(xlims, [ln_z_true, ln_z_true], "k--", linewidth=0.5)

    def draw_legend(self):
        n_rows, n_cols = self.grid
        ax = self.figure.add_subplot(
            n_rows, n_cols, self.plan.legend_slot(self.options.two_rows)
        )
        ax.cla()
        handles = []
        labels = []
        for i_layer, label in enumerate(self.plan.layer_labels):
            style = layer_style(i_layer)
            (handle,) = ax.plot(
                [],
                [],
                linestyle=style.linestyle,
                color=style.color,
                linewidth=self.line_width(i_layer),
            )
            handles.append(handle)
            labels.append(legend_label(label))
        ax.legend(handles, labels, frameon=False, loc="upper left", fontsize=14)
        ax.axis("off")
        return ax
