from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

import pandas as pd


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=indent, sort_keys=True))


def safe_tag(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in value)


def _format_number(value: Any) -> str:
    if value is None:
        return "NaN"
    if isinstance(value, float):
        if not math.isfinite(value):
            return "NaN"
        if abs(value - round(value)) < 1e-6:
            return str(int(round(value)))
        return f"{value:.4g}"
    return str(value)


def df_to_md_table(df: pd.DataFrame) -> list[str]:
    if df.empty or not list(df.columns):
        return []
    headers = [str(col) for col in df.columns]
    lines = ["| " + " | ".join(headers) + " |"]
    lines.append("| " + " | ".join(["---"] * len(headers)) + " |")
    for _, row in df.iterrows():
        values = [_format_number(row[col]) for col in df.columns]
        lines.append("| " + " | ".join(values) + " |")
    return lines


def write_table_with_md(df: pd.DataFrame, path: Path) -> None:
    """Write ``df`` as CSV at ``path`` and as a markdown table next to it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if df.empty and not list(df.columns):
        path.write_text("")
    else:
        df.to_csv(path, index=False)
    lines = df_to_md_table(df)
    path.with_suffix(".md").write_text("\n".join(lines) + "\n" if lines else "")
