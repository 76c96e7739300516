#!/usr/bin/env python3
"""
CLI: SK test
============

Generates synthetic S1/S2 sums via :mod:`gskthresh.simulator` and checks the
empirical false-alarm rate of the SK thresholds using
:func:`gskthresh.runtests.run_sk_test`.

Example:
    gskthresh sk-test --M 256 --N 32 --pfa 1e-4 --plot
    gskthresh sk-test --M 256 --N 32 --pfa 1e-3 --nf 64 --nblocks 4000 \
        --mode burst --burst-amp 8 --burst-frac 0.15
"""

from __future__ import annotations
import argparse
import json
from gskthresh import runtests

# keys of the result dict that are arrays, not summary values
_ARRAY_KEYS = {"s1", "s2", "sk", "flags"}


# ---------------------------------------------------------------------
# Argument definitions
# ---------------------------------------------------------------------
def add_args(parser: argparse.ArgumentParser) -> None:
    """Attach SK-test specific arguments (in addition to base parser)."""

    parser.add_argument(
        "--nf", type=int, default=1,
        help="Number of frequency channels."
    )
    parser.add_argument(
        "--mode", choices=["noise", "burst"], default="noise",
        help="Signal synthesis mode for simulator."
    )
    parser.add_argument(
        "--tolerance", type=float, default=None,
        help="Fail when |empirical - expected| two-sided PFA exceeds this (noise mode)."
    )
    parser.add_argument(
        "--renorm", action="store_true",
        help="Estimate d from the data (median renormalization) before thresholding."
    )

    # Burst parameters
    parser.add_argument(
        "--burst-amp", type=float, default=6.0,
        help="Burst amplitude multiplier (mode=burst)."
    )
    parser.add_argument(
        "--burst-frac", "--burst-fraction", dest="burst_frac",
        type=float, default=0.1,
        help="Burst fractional FWHM in time, 0..1 (mode=burst)."
    )
    parser.add_argument(
        "--burst-center", type=float, default=None,
        help="Burst center (raw sample index, mode=burst)."
    )

    parser.add_argument("--no-log_x", dest="log_x", action="store_false",
                        help="Disable log-scale on the x-axis (SK).")
    parser.add_argument("--no-log_bins", dest="log_bins", action="store_false",
                        help="Disable logarithmic binning for SK histograms.")
    parser.add_argument("--log_count", action="store_true",
                        help="Log-scale the count axis (y-axis).")
    parser.set_defaults(log_x=True, log_bins=True)


# ---------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------
def run(args: argparse.Namespace):
    """Run the SK test using gskthresh.runtests."""
    try:
        result = runtests.run_sk_test(
            M=args.M, N=args.N, d=args.d, pfa=args.pfa, method=args.method,
            renorm=args.renorm,
            nblocks=args.nblocks, nf=args.nf, seed=args.seed, mode=args.mode,
            burst_amp=args.burst_amp, burst_frac=args.burst_frac,
            burst_center=args.burst_center,
            tolerance=args.tolerance,
            plot=args.plot, log_bins=args.log_bins, log_x=args.log_x,
            log_count=args.log_count, save_path=args.save_path,
            dpi=args.dpi, transparent=args.transparent,
            verbose=args.verbose,
        )
    except AssertionError as e:
        raise SystemExit(f"sk-test failed: {e}")

    summary = {k: v for k, v in result.items() if k not in _ARRAY_KEYS}
    if getattr(args, "json", False):
        print(json.dumps(summary, indent=2, default=str))
    else:
        print(f"lower={result['lower']:.6g} upper={result['upper']:.6g} "
              f"below={result['below']} above={result['above']} total={result['total']}")
        print(f"Empirical two-sided PFA = {result['pfa_empirical']:.6g}, "
              f"expected = {result['pfa_expected']:.6g}")

    return result
