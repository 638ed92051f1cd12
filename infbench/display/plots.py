from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

import matplotlib.pyplot as plt
import numpy as np

from infbench.defaults import LineStyle


def legend_label(label: Optional[str]) -> str:
    """``algo@setting`` reads ``algo (setting)``; the ``base`` setting is dropped."""
    if label is None:
        return ""
    if "@" not in label:
        return label
    first, second = label.split("@", 1)
    if second.lower() == "base":
        return first
    return f"{first} ({second})"


def row_text(label: str) -> str:
    return label.replace("_", " ")


def draw_line(
    ax,
    xx: np.ndarray,
    yy: np.ndarray,
    style: LineStyle,
    *,
    linewidth: float,
    yerr: Optional[np.ndarray] = None,
    label: Optional[str] = None,
):
    """Draw a median curve, with IQR shading when ``yerr`` is given."""
    (line,) = ax.plot(
        xx,
        yy,
        linestyle=style.linestyle,
        color=style.color,
        linewidth=linewidth,
        label=label,
    )
    if yerr is not None and np.size(yerr):
        upper = yy + yerr[0]
        lower = yy - yerr[1]
        ax.fill_between(xx, lower, upper, color=style.color, alpha=0.15, linewidth=0)
    return line


def finalize_figure(
    fig, save_path: Optional[Union[str, Path]] = None, show: bool = False
) -> None:
    fig.set_facecolor("w")
    if save_path:
        directory = os.path.dirname(str(save_path))
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(save_path, bbox_inches="tight", dpi=150)
    if show:
        plt.show()
