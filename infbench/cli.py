from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from infbench.defaults import load_options_file
from infbench.display import finalize_figure
from infbench.factors import FACTOR_LABELS
from infbench.plot import infbench_plot
from infbench.utils import ensure_dir, safe_tag, write_json, write_table_with_md


def _split_labels(value: Optional[str]) -> Optional[list[Optional[str]]]:
    if value is None:
        return None
    return [item.strip() or None for item in value.split(",")]


def _parse_option(text: str) -> tuple[str, str]:
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"Expected key=value, got '{text}'")
    key, value = text.split("=", 1)
    return key.strip(), value.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="infbench",
        description="Plot inference benchmark results as a factorial panel grid.",
    )
    for name in FACTOR_LABELS:
        parser.add_argument(
            f"--{name}",
            type=str,
            default=None,
            help=f"Comma-separated {name} label(s)",
        )
    parser.add_argument(
        "--order",
        type=str,
        required=True,
        help="Factors on rows, columns and (optionally) figures, e.g. prob,subprob",
    )
    parser.add_argument("--data_dir", type=str, default=None)
    parser.add_argument(
        "--cache", type=str, default=None, help="Results cache file (.json.gz)"
    )
    parser.add_argument(
        "--save_cache",
        action="store_true",
        default=False,
        help="Write collected histories and summaries back to the cache",
    )
    parser.add_argument(
        "--config", type=str, default=None, help="YAML file with plot options"
    )
    parser.add_argument(
        "--option",
        type=_parse_option,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a single plot option (repeatable)",
    )
    parser.add_argument("--out_dir", type=str, default="infbench_plots")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    options: dict = {}
    if args.config:
        options.update(load_options_file(args.config))
    options.update(dict(args.option))
    if args.data_dir:
        options["data_dir"] = args.data_dir
    if args.cache:
        options["file_name"] = args.cache
    if args.save_cache:
        options["save_cache"] = True

    factors = [_split_labels(getattr(args, name)) for name in FACTOR_LABELS]
    order = [item.strip() for item in args.order.split(",") if item.strip()]
    benchdata = infbench_plot(*factors, order, options)

    out_dir = ensure_dir(Path(args.out_dir).resolve())
    for i_fig, figure in enumerate(benchdata.figures):
        name = safe_tag(f"infbench_{'_'.join(order)}_{i_fig + 1}")
        finalize_figure(figure, out_dir / f"{name}.png")
        plt.close(figure)
    write_table_with_md(benchdata.to_frame(), out_dir / "summary.csv")
    if benchdata.skips:
        write_json(out_dir / "skipped.json", benchdata.skips.to_dict())
    logging.info("Wrote %s figure(s) to %s", len(benchdata.figures), out_dir)
    return 0
