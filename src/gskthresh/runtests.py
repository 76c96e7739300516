# src/gskthresh/runtests.py
from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging
import numpy as np

from . import core
from .simulator import simulate
from .thresholds import DEFAULT_PFA, compute_sk_thresholds
from . import plot as plot_mod

logger = logging.getLogger(__name__)

__all__ = ["run_sk_test", "sweep_thresholds"]


# ---------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------
def _contam_from_cli(mode: str, burst_amp: float, burst_frac: float,
                     burst_center: Optional[float]) -> dict:
    """Build the `contam` dict expected by simulator.simulate(...)."""
    if str(mode or "noise") == "burst":
        return {
            "mode": "burst",
            "amp": float(burst_amp),
            "frac": float(burst_frac),
            "center": None if burst_center is None else float(burst_center),
        }
    return {"mode": "noise"}


def _count_flags(sk: np.ndarray, lower: float, upper: float):
    flags = np.zeros(np.shape(sk), dtype=int)
    flags[sk < lower] = -1
    flags[sk > upper] = +1
    flat = np.asarray(sk).ravel()
    below = int(np.count_nonzero(flat < lower))
    above = int(np.count_nonzero(flat > upper))
    return flags, below, above, int(flat.size)


# ---------------------------------------------------------------------
# 1) SK false-alarm test
# ---------------------------------------------------------------------
def run_sk_test(
    *,
    # SK parameters
    M: int = 128,
    N: float = 64,
    d: float = 1.0,
    pfa: float = DEFAULT_PFA,
    method: str = "newton",
    renorm: bool = False,
    # simulation (used only when precomputed is None)
    nblocks: int = 10000,
    nf: int = 1,
    seed: Optional[int] = 42,
    mode: str = "noise",
    burst_amp: float = 6.0,
    burst_frac: float = 0.1,
    burst_center: Optional[float] = None,
    tolerance: Optional[float] = None,
    # plotting toggles
    plot: bool = False,
    log_bins: bool = True,
    log_x: bool = True,
    log_count: bool = False,
    save_path: Optional[str] = None,
    dpi: int = 300,
    transparent: bool = False,
    verbose: bool = False,
    # real-data input: {"s1", "s2"} (+ optional "M", "N", "d")
    precomputed: Optional[Dict[str, Any]] = None,
) -> dict:
    """
    Compute SK on simulated (or supplied) S1/S2 sums, flag it against the
    Type III thresholds and compare the empirical two-sided false-alarm rate
    with the expected 2*pfa.

    With ``renorm=True`` the shape factor is re-estimated from the data and
    both SK and the thresholds use the empirical d.

    With `tolerance` set and pure-noise input, raises AssertionError when
    |empirical - expected| exceeds it.
    """
    if precomputed is not None:
        s1 = np.asarray(precomputed["s1"], float)
        s2 = np.asarray(precomputed["s2"], float)
        M = int(precomputed.get("M", M))
        N = precomputed.get("N", N)
        d = float(precomputed.get("d", d))
        sim_meta = precomputed.get("sim")
    else:
        contam = _contam_from_cli(mode, burst_amp, burst_frac, burst_center)
        sim = simulate(M, N, d, nblocks=nblocks, nf=nf, mode=contam["mode"],
                       contam=contam, seed=seed)
        s1, s2, sim_meta = sim["s1"], sim["s2"], sim["sim"]

    d_used = float(d)
    if renorm:
        d_emp, sk = core.renorm_sk(s1, s2, M, N=N)
        d_used = float(d_emp)
    else:
        sk = core.get_sk(s1, s2, M, N=N, d=d)
    sk = np.asarray(sk, float)

    lo, hi = compute_sk_thresholds(M, N, d_used, pfa, method=method)
    flags, below, above, total = _count_flags(sk, lo, hi)
    pfa_emp_two = (below + above) / float(total)
    pfa_exp_two = 2.0 * float(pfa)

    logger.debug("run_sk_test: M=%d N=%g d=%g -> %d/%d flagged", M, float(N), d_used,
                 below + above, total)

    if tolerance is not None and (precomputed is not None or mode == "noise"):
        if abs(pfa_emp_two - pfa_exp_two) > tolerance:
            raise AssertionError(
                f"Empirical PFA {pfa_emp_two:.6g} vs expected {pfa_exp_two:.6g} (tol={tolerance})"
            )

    if verbose:
        print(f"[run_sk_test] M={M} N={float(N):g} d={d_used:.6g} pfa={pfa}")
        print(f" thresholds: lo={lo:.6g} hi={hi:.6g}")
        print(f" empirical two-sided PFA={pfa_emp_two:.6g} vs expected={pfa_exp_two:.6g}")

    result = {
        "s1": s1, "s2": s2, "sk": sk, "flags": flags,
        "lower": float(lo), "upper": float(hi),
        "below": below, "above": above, "total": total,
        "pfa": float(pfa),
        "pfa_empirical": float(pfa_emp_two), "pfa_expected": float(pfa_exp_two),
        "M": int(M), "N": float(N), "d": d_used,
        "renorm": bool(renorm),
        "sim": sim_meta,
    }

    if plot:
        plot_mod.plot_sk_histogram(
            result,
            log_bins=log_bins, log_x=log_x, log_count=log_count,
            show=(save_path is None), save_path=save_path,
            dpi=dpi, transparent=transparent,
        )

    return result


# ---------------------------------------------------------------------
# 2) Threshold sweep
# ---------------------------------------------------------------------
def sweep_thresholds(
    M: int = 128,
    N: float = 64,
    d: float = 1.0,
    pfa_range: tuple[float, float] = (5e-4, 5e-3),
    steps: int = 10,
    *,
    logspace: bool = False,
    method: str = "newton",
    simulate_counts: bool = True,
    nblocks: int = 10000,
    seed: Optional[int] = 42,
    verbose: bool = False,
    # plot controls
    plot: bool = False,
    save_path: Optional[str] = None,
    dpi: int = 300,
    transparent: bool = False,
    dc_log_x: bool = False,
    dc_log_y: bool = False,
) -> List[dict]:
    """
    Thresholds (and, optionally, empirical flag counts) over a PFA grid.

    Each row holds 'pfa', 'lower', 'upper', 'std', 'M', 'N', 'd' and, with
    ``simulate_counts=True``, 'below', 'above', 'total'. One simulation is
    shared across the grid.
    """
    lo, hi = float(pfa_range[0]), float(pfa_range[1])
    if steps < 1:
        raise ValueError("steps must be >= 1")
    pfas = (np.logspace(np.log10(lo), np.log10(hi), int(steps))
            if logspace else
            np.linspace(lo, hi, int(steps)))

    sk = None
    if simulate_counts:
        sim = simulate(M, N, d, nblocks=nblocks, seed=seed)
        sk = np.asarray(core.get_sk(sim["s1"], sim["s2"], M, N=N, d=d), float)

    results: List[dict] = []
    for p in pfas:
        lo_th, hi_th, meta = compute_sk_thresholds(M, N, d, float(p), method=method,
                                                   return_meta=True)
        row = {
            "pfa": float(p),
            "lower": float(lo_th), "upper": float(hi_th),
            "std": float(meta["std_sk"]),
            "M": int(M), "N": float(N), "d": float(d),
        }
        if sk is not None:
            _, below, above, total = _count_flags(sk, lo_th, hi_th)
            row.update(below=below, above=above, total=total)
        if verbose:
            print(f"pfa={p:.6g}  lower={lo_th:.6g}  upper={hi_th:.6g}")
        results.append(row)

    if plot:
        show = save_path is None
        if sk is not None:
            plot_mod.plot_detection_curve(
                results, save_path=save_path, show=show,
                log_x=dc_log_x, log_y=dc_log_y, dpi=dpi, transparent=transparent,
            )
        else:
            plot_mod.plot_thresholds_vs_pfa(
                results, save_path=save_path, show=show, log_x=dc_log_x,
                dpi=dpi, transparent=transparent,
            )
    return results
