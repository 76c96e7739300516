#!/usr/bin/env python3
"""
CLI: `gskthresh sk-thresholds`

Tabulates the Type III SK thresholds for one (M, N, d) over one or more
one-sided PFAs. Output is a fixed-width table, CSV (--csv) or JSON (--json);
--meta appends the moment and fit diagnostics of the first PFA.
"""

from __future__ import annotations
import json
from typing import List, Tuple

import numpy as np
from gskthresh.errors import DomainError
from gskthresh.thresholds import compute_sk_thresholds

Row = Tuple[float, float, float]


def add_args(p):
    grid = p.add_argument_group("PFA grid (merged with --pfa)")
    grid.add_argument("--pfa-list", type=float, nargs="+", metavar="P",
                      help="Extra one-sided PFAs.")
    grid.add_argument("--logspace", nargs=3, metavar=("START", "STOP", "NUM"),
                      help="NUM log-spaced PFAs from START to STOP.")
    grid.add_argument("--sort", action="store_true",
                      help="Sort the merged grid and drop duplicates.")

    out = p.add_argument_group("output")
    out.add_argument("--csv", action="store_true", help="Print CSV instead of a table.")
    out.add_argument("--no-header", action="store_true", help="Omit the CSV header line.")
    out.add_argument("--precision", type=int, default=10, help="Digits after the decimal point.")
    out.add_argument("--meta", action="store_true",
                     help="Append moments, Type III parameters and m4 error for the first PFA.")

    num = p.add_argument_group("numerics")
    num.add_argument("--exact", action="store_true", help="Evaluate moments with mpmath.")
    num.add_argument("--err4-warn", type=float, default=None, metavar="PERCENT",
                     help="Warn when the m4 fit error exceeds PERCENT.")


def _build_pfas(args) -> List[float]:
    pfas = [float(args.pfa)] if getattr(args, "pfa", None) is not None else []
    pfas += [float(p) for p in (getattr(args, "pfa_list", None) or [])]

    if getattr(args, "logspace", None):
        try:
            start, stop, num = float(args.logspace[0]), float(args.logspace[1]), int(args.logspace[2])
        except ValueError:
            raise DomainError(f"--logspace expects START STOP NUM, got {args.logspace}")
        if start <= 0 or stop <= 0:
            raise DomainError("--logspace bounds must be positive")
        pfas += np.geomspace(start, stop, num=max(num, 2)).tolist()

    if getattr(args, "sort", False):
        pfas = sorted(set(pfas))

    bad = [p for p in pfas if not (0.0 < p < 1.0)]
    if bad:
        raise DomainError(f"pfa values must lie in (0, 1), got {bad}")
    return pfas


def _rows(args, pfas: List[float]) -> List[Row]:
    return [
        (p, *compute_sk_thresholds(args.M, args.N, args.d, p, method=args.method,
                                   exact=args.exact, err4_warn=args.err4_warn))
        for p in pfas
    ]


def _print_table(args, rows: List[Row], prec: int) -> None:
    width = prec + 8
    rule = "-" * (15 + 2 * (width + 3))
    print(f"SK thresholds for M={args.M}, N={args.N:g}, d={args.d:g} ({args.method})")
    print(rule)
    print(f"{'PFA':>12} | {'LOWER':>{width}} | {'UPPER':>{width}}")
    print(rule)
    for p, lo, hi in rows:
        print(f"{p:>12.3e} | {lo:>{width}.{prec}f} | {hi:>{width}.{prec}f}")
    print(rule)


def _print_csv(rows: List[Row], prec: int, header: bool) -> None:
    if header:
        print("pfa,lower,upper")
    for p, lo, hi in rows:
        print(f"{p:.3e},{lo:.{prec}f},{hi:.{prec}f}")


def _print_json(rows: List[Row], prec: int) -> None:
    print(json.dumps(
        [{"pfa": p, "lower": round(lo, prec), "upper": round(hi, prec)} for p, lo, hi in rows],
        indent=2,
    ))


def _print_meta(args, pfa: float) -> None:
    _, _, meta = compute_sk_thresholds(args.M, args.N, args.d, pfa, method=args.method,
                                       exact=args.exact, return_meta=True)
    mom, t3, beta = meta["moments"], meta["type3"], meta["beta"]
    print(f"\n[Meta Information] pfa={pfa:.6g}")
    print(f"  method               : {meta['method']}")
    print(f"  m2, m3, m4           : {mom['m2']:.6e}, {mom['m3']:.6e}, {mom['m4']:.6e}")
    print(f"  std(SK)              : {meta['std_sk']:.6e}")
    print(f"  β1, β2               : {beta['beta1']:.6e}, {beta['beta2']:.6e}")
    print(f"  Type III δ, β, α     : {t3['delta']:.6e}, {t3['beta']:.6e}, {t3['alpha']:.6e}")
    print(f"  m4 fit error (%)     : {meta['err4']:.3e}")


def run(args) -> List[Row]:
    pfas = _build_pfas(args)
    rows = _rows(args, pfas)

    if args.json:
        _print_json(rows, args.precision)
    elif args.csv:
        _print_csv(rows, args.precision, header=not args.no_header)
    else:
        _print_table(args, rows, args.precision)

    if args.meta and pfas:
        _print_meta(args, pfas[0])
    return rows
