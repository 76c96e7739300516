#!/usr/bin/env python3
"""
gskthresh.core
==============
The Generalized Spectral Kurtosis (SK) estimator.

    SK = (M N d + 1) / (M - 1) * (M S2 / S1^2 - 1)

where S1 and S2 are the sums of M power samples and of their squares, N is
the on-board accumulation count and d the Gamma shape factor of the raw
samples. Under the null hypothesis SK has unit mean.

This module only evaluates the estimator. Threshold computation lives in
:mod:`gskthresh.thresholds`.
"""

from __future__ import annotations
from typing import Any, Tuple, Union
import numpy as np

from .errors import DomainError
from .thresholds import DEFAULT_PFA, compute_sk_thresholds

__all__ = ["get_sk", "renorm_sk", "estimate_sk"]

ArrayLike = Union[float, np.ndarray]


# ---------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------
def _ensure_positive(name: str, val: Any, *, above: float = 0.0) -> np.ndarray:
    try:
        arr = np.asarray(val, dtype=np.float64)
    except (TypeError, ValueError):
        raise DomainError(f"{name} must be numeric, got {type(val)}")
    if not np.all(np.isfinite(arr)):
        raise DomainError(f"{name} must be finite.")
    if np.any(arr <= above):
        raise DomainError(f"{name} must be > {above:g}")
    return arr


def _scalar_or_array(arr: np.ndarray) -> ArrayLike:
    return float(arr) if np.ndim(arr) == 0 else arr


# ---------------------------------------------------------------------
# 1. Spectral Kurtosis computation
# ---------------------------------------------------------------------
def get_sk(
    s1: ArrayLike,
    s2: ArrayLike,
    M: ArrayLike,
    *,
    N: ArrayLike = 1,
    d: ArrayLike = 1.0,
) -> ArrayLike:
    """
    Compute the Generalized Spectral Kurtosis (SK) estimator.

    Parameters
    ----------
    s1 : float or ndarray
        Accumulated power sums.
    s2 : float or ndarray
        Accumulated squared-power sums (same shape as `s1`).
    M : float or ndarray
        Number of accumulations per SK estimate (> 1). Arrays broadcast
        against `s1`, e.g. shape (T, 1) for an M that varies in time.
    N : float or ndarray, optional
        On-board accumulation count (> 0), broadcastable.
    d : float or ndarray, optional
        Shape factor of the raw-sample Gamma distribution (> 0).

    Returns
    -------
    sk : float or ndarray
        SK values, a float when every input is scalar.

    Raises
    ------
    DomainError
        Shape mismatch between `s1` and `s2`, M <= 1, N <= 0, d <= 0,
        or any s1 == 0.
    """
    s1 = np.asarray(s1, dtype=np.float64)
    s2 = np.asarray(s2, dtype=np.float64)
    if s1.shape != s2.shape:
        raise DomainError(f"s1 and s2 must have identical shapes, got {s1.shape} and {s2.shape}")
    M = _ensure_positive("M", M, above=1.0)
    N = _ensure_positive("N", N)
    d = _ensure_positive("d", d)
    if np.any(s1 == 0):
        raise DomainError("s1 must be non-zero (SK divides by s1**2)")

    sk = ((M * N * d + 1.0) / (M - 1.0)) * ((M * s2) / (s1 ** 2) - 1.0)
    return _scalar_or_array(sk)


# ---------------------------------------------------------------------
# 2. Renormalization
# ---------------------------------------------------------------------
def renorm_sk(
    s1: ArrayLike,
    s2: ArrayLike,
    M: ArrayLike,
    *,
    N: ArrayLike = 1,
) -> Tuple[ArrayLike, ArrayLike]:
    """
    Estimate the shape factor d from the data and return the renormalized SK.

    A provisional SK is computed with d = 1. Its median μ is a robust estimate
    of the provisional mean, and d is chosen so that the renormalized mean is 1:

        d = (M N + 1 - μ) / (μ M N)

    which reduces to d = (M - μ + 1) / (μ M) for N = 1.

    Based on Nita, G.M. and Hellbourg, G. (2020), URSI GASS,
    https://doi.org/10.23919/URSIGASS49373.2020.9232173

    Returns
    -------
    d_empirical : float or ndarray
        Estimated shape factor (array if M or N are arrays).
    sk_renorm : float or ndarray
        SK computed with d = d_empirical.
    """
    sk_raw = get_sk(s1, s2, M, N=N, d=1.0)
    mu = float(np.median(sk_raw))
    if not np.isfinite(mu) or mu <= 0:
        raise DomainError(f"median provisional SK must be positive to estimate d, got {mu:g}")

    MN = np.asarray(M, dtype=np.float64) * np.asarray(N, dtype=np.float64)
    d_emp = (MN + 1.0 - mu) / (mu * MN)
    if np.any(d_emp <= 0):
        raise DomainError(f"estimated d is not positive (median SK {mu:g} exceeds M*N + 1)")

    return _scalar_or_array(d_emp), get_sk(s1, s2, M, N=N, d=d_emp)


# ---------------------------------------------------------------------
# 3. Estimator entry point
# ---------------------------------------------------------------------
def estimate_sk(
    s1: ArrayLike,
    s2: ArrayLike,
    M: ArrayLike,
    d: ArrayLike = 1.0,
    normalize: bool = False,
    *,
    N: ArrayLike = 1,
    return_thresholds: bool = False,
    pfa: float = DEFAULT_PFA,
    method: str = "newton",
):
    """
    SK estimator with optional self-calibration and thresholds.

    With ``normalize=True`` the supplied `d` is ignored and estimated from the
    data by :func:`renorm_sk`. With ``return_thresholds=True`` the result is
    ``(sk, (lower, upper))`` where the thresholds use the provided or derived
    d; this requires scalar M, N and d.
    """
    if normalize:
        d, sk = renorm_sk(s1, s2, M, N=N)
    else:
        sk = get_sk(s1, s2, M, N=N, d=d)

    if not return_thresholds:
        return sk

    if np.ndim(M) != 0 or np.ndim(N) != 0 or np.ndim(d) != 0:
        raise DomainError("thresholds require scalar M, N and d")
    lower, upper = compute_sk_thresholds(float(M), float(N), float(d), pfa, method=method)
    return sk, (lower, upper)
