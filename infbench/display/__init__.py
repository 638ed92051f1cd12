from infbench.display.panels import PanelRenderer
from infbench.display.plots import finalize_figure, legend_label

__all__ = [
    "PanelRenderer",
    "finalize_figure",
    "legend_label",
]
