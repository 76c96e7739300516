# gskthresh/cli/sk_thresholds_sweep_cli.py
from __future__ import annotations
import json
from .. import runtests


def add_args(p):
    # sweep controls
    p.add_argument("--pfa-range", nargs=2, type=float, metavar=("MIN", "MAX"),
                   default=(5e-4, 5e-3),
                   help="One-sided PFA range [min max] to sweep.")
    p.add_argument("--steps", type=int, default=10,
                   help="Number of PFA points (inclusive) across the range.")
    p.add_argument("--logspace", action="store_true",
                   help="Use log-spaced PFAs between pfa-range bounds.")
    p.add_argument("--no-sim", dest="simulate_counts", action="store_false",
                   help="Only compute thresholds; skip the simulated flag counts.")

    # detection-curve styling (only used by plot step)
    p.add_argument("--dc-log-x", dest="dc_log_x", action="store_true",
                   help="Log-scale the x-axis (PFA) on the plot.")
    p.add_argument("--dc-log-y", dest="dc_log_y", action="store_true",
                   help="Log-scale the y-axis (false-alarm rate) on the detection curve.")


def run(args):
    kw = {
        "M": args.M,
        "N": args.N,
        "d": args.d,
        "pfa_range": tuple(args.pfa_range),
        "steps": args.steps,
        "logspace": args.logspace,
        "method": args.method,
        "simulate_counts": args.simulate_counts,
        "nblocks": args.nblocks,
        "seed": args.seed,
        "verbose": args.verbose,

        # base plot controls
        "plot": args.plot,
        "save_path": args.save_path,
        "dpi": args.dpi,
        "transparent": args.transparent,

        # detection-curve options
        "dc_log_x": args.dc_log_x,
        "dc_log_y": args.dc_log_y,
    }

    results = runtests.sweep_thresholds(**kw)

    if getattr(args, "json", False):
        print(json.dumps(results, indent=2))
    elif results:
        print(f"Sweep: {len(results)} points "
              f"from pfa={results[0]['pfa']:.3g} to {results[-1]['pfa']:.3g}")
    else:
        print("Sweep: no results")
    return results
