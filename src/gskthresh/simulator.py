#!/usr/bin/env python3
"""
Simulator for accumulated SK inputs (S1, S2) under Gamma-distributed noise.

Public API:
- simulate(M, N=1, d=1.0, *, nblocks=10000, nf=1, mode="noise",
           contam=None, seed=None, rng=None)
    -> {"s1": (nblocks, nf), "s2": (nblocks, nf), "sim": {...}}

Each raw sample is drawn from Gamma(shape=N*d, scale=1), the law of a sum of
N on-board accumulations of Gamma(d) power samples. Blocks of M raw samples
are reduced to S1 = Σx and S2 = Σx² on the fly, so memory stays bounded for
large M.
"""

from __future__ import annotations
from typing import Optional, Dict, Any
import numpy as np

__all__ = ["simulate"]

# raw samples generated per chunk (blocks * M * nf)
_CHUNK_SAMPLES = 1 << 22


# ------------------------- helpers -------------------------

def _coerce_rng(seed: Optional[int] = None, rng: Optional[np.random.Generator] = None) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(seed)


def _burst_envelope(t: np.ndarray, ns: int, amp: float, frac: float, center: Optional[float]) -> np.ndarray:
    """
    Temporal Gaussian gain (1 + amp * G(t)) over raw-sample indices `t`.
    """
    c = float(ns // 2) if center is None else float(center)
    # Convert fractional FWHM to sigma
    frac = max(1e-6, min(1.0, float(frac)))
    fwhm = frac * ns
    sigma = fwhm / (2.0 * np.sqrt(2.0 * np.log(2.0)))
    return 1.0 + float(amp) * np.exp(-0.5 * ((t - c) / sigma) ** 2)


# ------------------------- API: simulate -------------------------

def simulate(
    M: int,
    N: float = 1,
    d: float = 1.0,
    *,
    nblocks: int = 10000,
    nf: int = 1,
    mode: str = "noise",
    contam: Optional[Dict[str, Any]] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> Dict[str, Any]:
    """
    Generate accumulated S1/S2 maps of shape (nblocks, nf).

    Contamination (mode or contam['mode']):
      - 'noise' : pure Gamma background
      - 'burst' : multiply raw power by a Gaussian-in-time envelope,
                  contam = {"amp": 6.0, "frac": 0.1, "center": None}
                  where frac is the FWHM as a fraction of the raw series and
                  center a raw-sample index.

    Returns:
        {
          "s1": (nblocks, nf) ndarray,
          "s2": (nblocks, nf) ndarray,
          "sim": {"M","N","d","nblocks","nf","mode","contam","seed"}
        }
    """
    M = int(M)
    if M < 2:
        raise ValueError("M must be >= 2")
    if nblocks <= 0:
        raise ValueError("nblocks must be > 0")
    if nf <= 0:
        raise ValueError("nf must be > 0")
    if N <= 0:
        raise ValueError("N must be > 0")
    if d <= 0:
        raise ValueError("d must be > 0")

    # CLI may pass both 'mode' and contam['mode']
    contam = dict(contam or {})
    c_mode = str(contam.get("mode", mode or "noise")).lower()
    if c_mode not in ("noise", "burst"):
        raise ValueError("mode must be one of {'noise','burst'}")
    contam["mode"] = c_mode

    rng = _coerce_rng(seed, rng)
    ns = nblocks * M
    shape = float(N) * float(d)

    s1 = np.empty((nblocks, nf), dtype=float)
    s2 = np.empty((nblocks, nf), dtype=float)

    per_chunk = max(1, _CHUNK_SAMPLES // (M * nf))
    for start in range(0, nblocks, per_chunk):
        stop = min(nblocks, start + per_chunk)
        raw = rng.gamma(shape=shape, scale=1.0, size=(stop - start, M, nf))
        if c_mode == "burst":
            t = np.arange(start * M, stop * M, dtype=float).reshape(stop - start, M, 1)
            raw *= _burst_envelope(
                t, ns,
                amp=float(contam.get("amp", 6.0)),
                frac=float(contam.get("frac", 0.1)),
                center=contam.get("center"),
            )
        s1[start:stop] = raw.sum(axis=1)
        s2[start:stop] = (raw * raw).sum(axis=1)

    sim = {
        "M": M, "N": N, "d": float(d),
        "nblocks": int(nblocks), "nf": int(nf),
        "mode": c_mode, "contam": contam, "seed": seed,
    }
    return {"s1": s1, "s2": s2, "sim": sim}
