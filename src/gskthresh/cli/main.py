#!/usr/bin/env python3
"""
`gskthresh` console entry point.

Subcommands share one parent parser for the accumulation parameters
(M, N, d), the one-sided PFA, the root-finding method, the simulation size
and the plot/output switches:

  sk-thresholds         tabulate thresholds over a PFA grid
  sk-test               empirical false-alarm check on simulated data
  sk-thresholds-sweep   thresholds and flag counts across a PFA range
"""

from __future__ import annotations
import argparse
import logging
import sys
from importlib.metadata import version, PackageNotFoundError

from gskthresh.errors import GSKError
from gskthresh.thresholds import DEFAULT_PFA
from gskthresh.cli import sk_cli, sk_thresholds_cli, sk_thresholds_sweep_cli

# (name, module, help)
_SUBCOMMANDS = (
    ("sk-thresholds", sk_thresholds_cli, "Tabulate SK thresholds (table/CSV/JSON)"),
    ("sk-test", sk_cli, "Check the empirical false-alarm rate on simulated data"),
    ("sk-thresholds-sweep", sk_thresholds_sweep_cli, "Thresholds and flag counts over a PFA range"),
)

_EPILOG = """\
Examples:
  gskthresh sk-thresholds --M 6104 --N 1 --pfa 0.0013499
  gskthresh sk-thresholds --M 128 --N 64 --logspace 1e-5 1e-2 25 --json
  gskthresh sk-test --M 256 --N 32 --pfa 1e-3 --renorm --plot
  gskthresh sk-thresholds-sweep --M 128 --N 64 --pfa-range 1e-4 1e-2 --steps 20 --logspace
"""


class _SmartFormatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawTextHelpFormatter):
    pass


# ---------- argparse value types ----------
def _positive_int(name: str):
    def _t(v: str) -> int:
        try:
            iv = int(v)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{name} must be an integer, got {v!r}")
        if iv <= 0:
            raise argparse.ArgumentTypeError(f"{name} must be > 0, got {iv}")
        return iv
    return _t


def _positive_float(name: str):
    def _t(v: str) -> float:
        try:
            fv = float(v)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{name} must be a number, got {v!r}")
        if not fv > 0:
            raise argparse.ArgumentTypeError(f"{name} must be > 0, got {fv:g}")
        return fv
    return _t


def _pfa_type(v: str) -> float:
    try:
        fv = float(v)
    except ValueError:
        raise argparse.ArgumentTypeError(f"pfa must be a number, got {v!r}")
    if not (0.0 < fv < 1.0):
        raise argparse.ArgumentTypeError(f"pfa must lie in (0, 1), got {fv:g}")
    return fv


def _get_version() -> str:
    try:
        return version("gskthresh")
    except PackageNotFoundError:
        return "unknown"


# ---------- parsers ----------
def _build_base_parser() -> argparse.ArgumentParser:
    base = argparse.ArgumentParser(add_help=False)

    sk = base.add_argument_group("SK parameters")
    sk.add_argument("--M", type=_positive_int("M"), default=128, help="Samples per SK estimate (>= 2).")
    sk.add_argument("--N", type=_positive_float("N"), default=64, help="On-board accumulations.")
    sk.add_argument("--d", type=_positive_float("d"), default=1.0, help="Gamma shape factor.")
    sk.add_argument("--pfa", type=_pfa_type, default=DEFAULT_PFA, help="One-sided false-alarm probability.")
    sk.add_argument("--method", choices=["newton", "bracket"], default="newton",
                    help="Threshold root finder.")

    sim = base.add_argument_group("simulation")
    sim.add_argument("--nblocks", type=_positive_int("nblocks"), default=10000, help="Simulated SK blocks.")
    sim.add_argument("--seed", type=int, default=42, help="RNG seed.")

    out = base.add_argument_group("output")
    out.add_argument("--json", action="store_true", help="Print JSON.")
    out.add_argument("--plot", action="store_true", help="Draw the result.")
    out.add_argument("--save_path", type=str, default=None, help="Save the figure here instead of showing it.")
    out.add_argument("--dpi", type=_positive_int("dpi"), default=300, help="Saved figure DPI.")
    out.add_argument("--transparent", action="store_true", help="Transparent figure background.")
    out.add_argument("--verbose", action="store_true", help="Extra output and DEBUG logging.")
    return base


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gskthresh",
        description="Generalized SK estimator and Pearson Type III thresholds",
        formatter_class=_SmartFormatter,
        epilog=_EPILOG,
    )
    parser.add_argument("--version", action="version", version=f"gskthresh {_get_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)
    base = _build_base_parser()
    for name, module, help_text in _SUBCOMMANDS:
        sub = subparsers.add_parser(name, parents=[base], help=help_text,
                                    formatter_class=_SmartFormatter)
        module.add_args(sub)
        sub.set_defaults(func=module.run)
    return parser


def main(argv=None) -> None:
    args = _build_parser().parse_args(argv)
    if args.M < 2:
        raise SystemExit("error: M must be >= 2")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        args.func(args)
    except GSKError as e:
        print(f"error: {e}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
