#!/usr/bin/env python3
"""
Plotting utilities for gskthresh.

Public API:
  1) plot_sk_histogram(result, ...)
  2) plot_thresholds_vs_pfa(rows, ...)
  3) plot_detection_curve(results, ...)
"""

from __future__ import annotations
from typing import Optional, Sequence, Mapping, Any
import numpy as np
import matplotlib.pyplot as plt

__all__ = ["plot_sk_histogram", "plot_thresholds_vs_pfa", "plot_detection_curve"]


# --------------------------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------------------------
def _safe_show(do_show: bool) -> None:
    """Always attempt to show when requested; just suppress Agg warnings."""
    if not do_show:
        return
    import warnings
    with warnings.catch_warnings():
        # Silence non-interactive backend warnings, but still call show()
        warnings.filterwarnings("ignore", message="FigureCanvasAgg is non-interactive")
        warnings.filterwarnings("ignore", message="Matplotlib is currently using.*")
        plt.show()


def _maybe_show_or_save(fig, save_path, show, dpi=300, transparent=False):
    if save_path:
        fig.savefig(save_path, dpi=dpi, transparent=transparent)
    _safe_show(show)
    if not show:
        plt.close(fig)


def _set_constrained_layout(fig):
    fig.set_layout_engine("constrained")


def _hist_edges(sk: np.ndarray, log_bins: bool):
    if not log_bins:
        return "auto"
    pos = sk[sk > 0]
    if pos.size == 0:
        # fallback to linear if all non-positive
        return "auto"
    nb = max(20, int(np.sqrt(pos.size)))
    lo, hi = pos.min(), pos.max()
    if hi <= lo:
        return "auto"
    return np.geomspace(lo, hi, nb + 1)


# --------------------------------------------------------------------------------------
# SK histogram with thresholds
# --------------------------------------------------------------------------------------
def plot_sk_histogram(
    result: Mapping[str, Any],
    *,
    title: Optional[str] = None,
    log_x: bool = True,
    log_bins: bool = True,
    log_count: bool = False,
    show: bool = True,
    save_path: Optional[str] = None,
    dpi: int = 300,
    transparent: bool = False,
    figsize: tuple[float, float] = (7.6, 4.6),
    ax=None,
):
    """
    Histogram of SK values with unity and threshold markers.

    `result` is the dict returned by :func:`gskthresh.runtests.run_sk_test`
    (keys 'sk', 'lower', 'upper', 'below', 'above', 'total', 'pfa',
    'M', 'N', 'd'). Returns the Axes.
    """
    sk = np.asarray(result["sk"], dtype=float).ravel()
    lower = float(result["lower"])
    upper = float(result["upper"])
    below = int(result["below"])
    above = int(result["above"])
    total = int(result["total"])
    pfa = float(result["pfa"])

    created_fig = ax is None
    if created_fig:
        fig = plt.figure(figsize=figsize)
        _set_constrained_layout(fig)
        ax = fig.add_subplot(1, 1, 1)
    else:
        fig = ax.figure

    edges = _hist_edges(sk, log_bins)
    data = sk[sk > 0] if not isinstance(edges, str) else sk
    ax.hist(data, bins=edges, edgecolor="black", linewidth=0.6, alpha=0.75)

    if log_x and (sk > 0).any():
        ax.set_xscale("log")
    if log_count:
        ax.set_yscale("log")

    ax.set_xlabel("SK")
    ax.set_ylabel("Count")
    ax.set_title(title or "SK histogram")

    # reference lines + small legend
    h_unity = ax.axvline(1.0, color="k", linestyle="--", linewidth=1.2)
    h_low = ax.axvline(lower, color="red", linestyle="--", linewidth=1.2)
    h_up = ax.axvline(upper, color="red", linestyle="--", linewidth=1.2)
    ax.legend([h_unity, h_low, h_up],
              ["unity (1.0)", f"lower = {lower:.6g}", f"upper = {upper:.6g}"],
              loc="center right", frameon=True, framealpha=0.9, fontsize=9)

    frac_below = (below / total) if total else 0.0
    frac_above = (above / total) if total else 0.0
    meta = (
        f"M={int(result['M'])}  N={result['N']:g}  d={float(result['d']):g}  pfa={pfa:.6g}\n"
        f"below={below} ({100*frac_below:.2f}%)   above={above} ({100*frac_above:.2f}%)\n"
        f"two-sided={100*(frac_below + frac_above):.3f}%   expected: {200*pfa:.4g}%"
    )
    ax.text(
        0.02, 0.98, meta,
        transform=ax.transAxes, ha="left", va="top", fontsize=9,
        bbox=dict(facecolor="white", alpha=0.85, edgecolor="0.7", pad=4.0),
    )

    if created_fig:
        _maybe_show_or_save(fig, save_path, show, dpi=dpi, transparent=transparent)
    return ax


# --------------------------------------------------------------------------------------
# Thresholds vs PFA
# --------------------------------------------------------------------------------------
def plot_thresholds_vs_pfa(
    rows: Sequence[Mapping[str, float]],
    *,
    title: Optional[str] = None,
    log_x: bool = True,
    show: bool = True,
    save_path: Optional[str] = None,
    dpi: int = 300,
    transparent: bool = False,
):
    """Plot lower/upper thresholds against one-sided PFA. Rows need 'pfa', 'lower', 'upper'."""
    if not rows:
        raise ValueError("No rows provided.")
    rows = sorted(rows, key=lambda r: float(r["pfa"]))
    pfas = np.array([r["pfa"] for r in rows], dtype=float)
    lo = np.array([r["lower"] for r in rows], dtype=float)
    hi = np.array([r["upper"] for r in rows], dtype=float)

    fig, ax = plt.subplots(figsize=(8, 5))
    _set_constrained_layout(fig)
    ax.plot(pfas, lo, "o-", label="lower")
    ax.plot(pfas, hi, "s-", label="upper")
    ax.axhline(1.0, color="k", linestyle="--", linewidth=1.0)
    if log_x:
        ax.set_xscale("log")
    ax.set_xlabel("PFA (one-sided)")
    ax.set_ylabel("SK threshold")
    if title:
        ax.set_title(title)
    ax.legend()
    _maybe_show_or_save(fig, save_path, show, dpi=dpi, transparent=transparent)
    return ax


# --------------------------------------------------------------------------------------
# Detection curve
# --------------------------------------------------------------------------------------
def plot_detection_curve(results, save_path=None, show=True, dpi=300,
                         transparent=False, log_x=False, log_y=False):
    """Empirical two-sided false-alarm rate against the expected 2*pfa."""
    if not results:
        raise ValueError("No results provided.")
    results = sorted(results, key=lambda r: float(r["pfa"]))
    pfas = np.array([r["pfa"] for r in results], dtype=float)
    det = np.array([(r["below"] + r["above"]) / r["total"] for r in results], dtype=float)
    fig, ax = plt.subplots(figsize=(10, 6))
    _set_constrained_layout(fig)
    ax.plot(pfas, det, "o-", label="Empirical 2-sided PFA")
    ax.plot(pfas, 2.0 * pfas, "k--", label="Expected 2*pfa")
    if log_x:
        ax.set_xscale("log")
    if log_y:
        ax.set_yscale("log")
    ax.set_xlabel("PFA (one-sided)")
    ax.set_ylabel("False-alarm rate")
    ax.legend()
    _maybe_show_or_save(fig, save_path, show, dpi=dpi, transparent=transparent)
    return ax
