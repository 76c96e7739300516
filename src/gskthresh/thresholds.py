#!/usr/bin/env python3
"""
SK detection thresholds from a Pearson Type III fit.

The exact central moments of the Generalized SK estimator (mean 1) are mapped
to a shifted/scaled Gamma law

    SK ~ delta + alpha * G,    G ~ Gamma(beta)

with
    delta = m1 - 2 m2^2 / m3
    beta  = 4 m2^3 / m3^2
    alpha = m3 / (2 m2)

which matches m1, m2, m3 exactly. The thresholds are the points where the
regularized lower incomplete gamma function P(beta, z), z = (x - delta)/alpha,
equals pfa (lower) and 1 - pfa (upper) when alpha > 0; the roles swap when
m3 < 0 (alpha < 0, a left-skewed law bounded above).

Two solvers are available:
  - method='newton'  : secant iteration on |P - pfa| seeded at x = 1, with the
                       objective clamped to 0 outside the support (z < 0).
                       Matches the classic SK threshold recipe. A bound
                       whose secant stalls is re-solved by bracketing.
  - method='bracket' : Brent's method on the signed tail residual, with a
                       bracket grown from the mean in steps of sqrt(m2).

Reference: Nita & Gary (2010), MNRAS Letters, 406(1), L60–L64;
           Nita, Hickish, MacMahon & Gary (2016), J. Astron. Instrum. 5, 1641009.

Notes:
- pfa is **one-sided**. The symmetric two-sided false-alarm ≈ 2*pfa.
"""

from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass, asdict
from typing import Tuple, Dict, Literal, Optional, overload

import numpy as np
from scipy import optimize, special
import mpmath as mp

from .errors import DomainError, NonConvergenceError, NumericalWarning

__all__ = [
    "DEFAULT_M", "DEFAULT_N", "DEFAULT_D", "DEFAULT_PFA",
    "Moments", "TypeIIIParams",
    "compute_moments", "type3_params", "fourth_moment_error", "beta_invariants",
    "solve_thresholds", "compute_sk_thresholds",
]

logger = logging.getLogger(__name__)

DEFAULT_M = 6104
DEFAULT_N = 1
DEFAULT_D = 1.0
DEFAULT_PFA = 0.0013499  # one-sided 3-sigma normal tail

DEFAULT_FTOL = 1e-8
DEFAULT_MAXITER = 100

_XTOL = 1e-12
_MP_DPS = 50
_MAX_BRACKET_STEPS = 200


# ============================================================
# Validation helpers
# ============================================================

def _as_float(name: str, val, *, above: float = 0.0) -> float:
    try:
        fv = float(val)
    except (TypeError, ValueError):
        raise DomainError(f"{name} must be convertible to float, got {type(val)}")
    if not np.isfinite(fv):
        raise DomainError(f"{name} must be finite.")
    if fv <= above:
        raise DomainError(f"{name} must be > {above:g}, got {fv:g}")
    return fv


def _check_pfa(pfa) -> float:
    try:
        p = float(pfa)
    except (TypeError, ValueError):
        raise DomainError(f"pfa must be convertible to float, got {type(pfa)}")
    if not (0.0 < p < 1.0):
        raise DomainError(f"pfa must be in (0, 1), got {p:g}")
    return p


# ============================================================
# Exact SK moments (central), mean = 1
# ============================================================

@dataclass(frozen=True)
class Moments:
    """First four central moments of SK (m1 is the mean, fixed at 1)."""
    m1: float
    m2: float
    m3: float
    m4: float

    @property
    def std(self) -> float:
        return float(np.sqrt(self.m2))


def _moment_expressions(M, Nd):
    # Generic arithmetic: works for floats and mpmath numbers alike.
    m2 = (2 * M**2 * Nd * (1 + Nd)) / (
        (M - 1) * (6 + 5 * M * Nd + M**2 * Nd**2)
    )

    m3 = (8 * M**3 * Nd * (1 + Nd) * (-2 + Nd * (-5 + M * (4 + Nd)))) / (
        (M - 1)**2
        * (2 + M * Nd)
        * (3 + M * Nd)
        * (4 + M * Nd)
        * (5 + M * Nd)
    )

    m4 = (
        12 * M**4 * Nd * (1 + Nd)
        * (24 + Nd * (48 + 84 * Nd + M * (-32 + Nd * (-245 - 93 * Nd
           + M * (125 + Nd * (68 + M + (3 + M) * Nd))))))  # noqa: E501
    ) / (
        (M - 1)**3
        * (2 + M * Nd)
        * (3 + M * Nd)
        * (4 + M * Nd)
        * (5 + M * Nd)
        * (6 + M * Nd)
        * (7 + M * Nd)
    )
    return m2, m3, m4


def compute_moments(M: float, Nd: float, *, exact: bool = False) -> Moments:
    """
    Exact SK central moments per Nita & Gary (2010).

    Parameters
    ----------
    M : float
        Off-board accumulation length, must be > 1.
    Nd : float
        Product of on-board accumulations N and shape factor d, must be > 0.
    exact : bool, default False
        Evaluate the rational expressions with mpmath at 50 digits before
        rounding to double. Useful for small M or Nd where the polynomial
        terms cancel.
    """
    M = _as_float("M", M, above=1.0)
    Nd = _as_float("Nd", Nd)

    if exact:
        with mp.workdps(_MP_DPS):
            m2, m3, m4 = _moment_expressions(mp.mpf(M), mp.mpf(Nd))
            return Moments(1.0, float(m2), float(m3), float(m4))

    m2, m3, m4 = _moment_expressions(M, Nd)
    return Moments(1.0, float(m2), float(m3), float(m4))


def beta_invariants(moments: Moments) -> Tuple[float, float]:
    """
    β1 (squared skewness) = (m3^2) / (m2^3)
    β2 (kurtosis)         = m4 / (m2^2)
    """
    m2, m3, m4 = moments.m2, moments.m3, moments.m4
    if m2 <= 0:
        raise DomainError("Variance m2 must be positive for β invariants.")
    return float(m3 * m3 / m2**3), float(m4 / (m2 * m2))


# ============================================================
# Pearson Type III parameters
# ============================================================

@dataclass(frozen=True)
class TypeIIIParams:
    """
    Shifted/scaled Gamma law ``delta + alpha * Gamma(beta)``.

    With m1 = 1 the standardized argument
        z(x) = (-(m3 - 2 m2^2)/m3 + x) / (m3 / (2 m2))
    reduces to (x - delta) / alpha.
    """
    delta: float
    beta: float
    alpha: float

    @property
    def shape(self) -> float:
        return self.beta

    @property
    def std(self) -> float:
        return float(abs(self.alpha) * np.sqrt(self.beta))

    @property
    def mean(self) -> float:
        return self.delta + self.alpha * self.beta

    def z(self, x: float) -> float:
        return (x - self.delta) / self.alpha


def type3_params(moments: Moments) -> TypeIIIParams:
    """
    Match a Pearson Type III law to (m1, m2, m3).

    Raises DomainError when m3 == 0: the skewness factor
    -2 + Nd*(-5 + M*(4 + Nd)) vanishes (e.g. M=2, Nd=0.5) and the law has no
    finite Type III representation.
    """
    m1, m2, m3 = moments.m1, moments.m2, moments.m3
    if m2 <= 0:
        raise DomainError("Variance m2 must be positive for a Type III fit.")
    if m3 == 0:
        raise DomainError("m3 = 0: the Type III law degenerates (zero skewness).")
    delta = m1 - 2.0 * m2**2 / m3
    beta = 4.0 * m2**3 / m3**2
    alpha = m3 / (2.0 * m2)
    return TypeIIIParams(float(delta), float(beta), float(alpha))


def fourth_moment_error(moments: Moments, params: TypeIIIParams) -> float:
    """Percent deviation of the Type III implied m4 from the exact m4."""
    beta, alpha = params.beta, params.alpha
    return float(abs((3.0 * beta * (2.0 + beta) * alpha**4 / moments.m4 - 1.0) * 100.0))


# ============================================================
# Root objectives (newton)
# ============================================================

def _lower_root(x: float, params: TypeIIIParams, pfa: float) -> float:
    z = params.z(x)
    if z < 0:
        return 0.0
    return abs(special.gammainc(params.beta, z) - pfa)


def _upper_root(x: float, params: TypeIIIParams, pfa: float) -> float:
    z = params.z(x)
    if z < 0:
        return 0.0
    return abs((1.0 - special.gammainc(params.beta, z)) - pfa)


def _newton_bound(bound, objective, params, pfa, *, x0, ftol, maxiter) -> float:
    with warnings.catch_warnings():
        # secant stalls are judged by the residual check below
        warnings.simplefilter("ignore", RuntimeWarning)
        root, info = optimize.newton(
            objective, x0, args=(params, pfa),
            tol=_XTOL, maxiter=maxiter, full_output=True, disp=False,
        )
    root = float(root)
    if not np.isfinite(root):
        raise NonConvergenceError(bound, "secant iteration diverged", x=root)
    if params.z(root) < 0:
        raise NonConvergenceError(
            bound, f"stalled at x={root:.6g}, outside the Type III support", x=root,
        )
    residual = float(objective(root, params, pfa))
    if residual > ftol:
        raise NonConvergenceError(
            bound,
            f"residual {residual:.3e} > {ftol:.1e} after {info.iterations} iterations",
            x=root, residual=residual,
        )
    logger.debug("%s threshold %.12g (%d iterations, residual %.2e)",
                 bound, root, info.iterations, residual)
    return root


# ============================================================
# Signed tail residuals (bracket)
# ============================================================

def _cdf(x: float, params: TypeIIIParams) -> float:
    z = params.z(x)
    if params.alpha > 0:
        return 0.0 if z <= 0 else float(special.gammainc(params.beta, z))
    return 1.0 if z <= 0 else float(special.gammaincc(params.beta, z))


def _sf(x: float, params: TypeIIIParams) -> float:
    z = params.z(x)
    if params.alpha > 0:
        return 1.0 if z <= 0 else float(special.gammaincc(params.beta, z))
    return 0.0 if z <= 0 else float(special.gammainc(params.beta, z))


def _lower_residual(x: float, params: TypeIIIParams, pfa: float) -> float:
    return _cdf(x, params) - pfa


def _upper_residual(x: float, params: TypeIIIParams, pfa: float) -> float:
    # negated so that both residuals increase with x
    return pfa - _sf(x, params)


def _grow_bracket(bound, residual, params, pfa, x0) -> Tuple[float, float]:
    """Expand [a, b] around x0 until residual(a) < 0 < residual(b)."""
    step = params.std
    a = b = float(x0)
    fa = fb = residual(a, params, pfa)
    n = 0
    while fa >= 0.0:
        a -= step
        fa = residual(a, params, pfa)
        step *= 2.0
        n += 1
        if n > _MAX_BRACKET_STEPS:
            raise NonConvergenceError(bound, "could not bracket the root from below", x=a)
    step = params.std
    while fb <= 0.0:
        b += step
        fb = residual(b, params, pfa)
        step *= 2.0
        n += 1
        if n > _MAX_BRACKET_STEPS:
            raise NonConvergenceError(bound, "could not bracket the root from above", x=b)
    return a, b


def _bracket_bound(bound, residual, params, pfa, *, x0, ftol, maxiter) -> float:
    a, b = _grow_bracket(bound, residual, params, pfa, x0)
    root, info = optimize.brentq(
        residual, a, b, args=(params, pfa),
        xtol=_XTOL, maxiter=maxiter, full_output=True, disp=False,
    )
    root = float(root)
    res = abs(float(residual(root, params, pfa)))
    if not info.converged or res > ftol:
        raise NonConvergenceError(
            bound,
            f"brentq on [{a:.6g}, {b:.6g}] stopped with residual {res:.3e} ({info.flag})",
            x=root, residual=res,
        )
    logger.debug("%s threshold %.12g (bracket [%.6g, %.6g], %d iterations)",
                 bound, root, a, b, info.iterations)
    return root


def _newton_then_bracket(bound, objective, residual, params, pfa, *, x0, ftol, maxiter) -> float:
    """Secant first; if it stalls on the clamped plateau or misses ftol, bracket."""
    try:
        return _newton_bound(bound, objective, params, pfa, x0=x0, ftol=ftol, maxiter=maxiter)
    except NonConvergenceError as e:
        logger.debug("%s; retrying with a bracketing solve", e)
    return _bracket_bound(bound, residual, params, pfa, x0=x0, ftol=ftol, maxiter=maxiter)


# ============================================================
# Threshold solver
# ============================================================

def solve_thresholds(
    params: TypeIIIParams,
    pfa: float = DEFAULT_PFA,
    *,
    method: Literal["newton", "bracket"] = "newton",
    x0: float = 1.0,
    ftol: float = DEFAULT_FTOL,
    maxiter: int = DEFAULT_MAXITER,
) -> Tuple[float, float]:
    """
    Invert the Type III tails: return (lower, upper) with
    CDF(lower) = pfa and 1 - CDF(upper) = pfa.

    For alpha > 0 the CDF is P(beta, z(x)); for alpha < 0 (negative skew) it
    is 1 - P(beta, z(x)), so the two gamma objectives trade places.

    With method='newton' a bound whose secant iteration stalls (typically on
    the zero plateau below the support edge) is re-solved by bracketing, so
    the newton numbers are kept wherever the secant converges.

    Each bound is solved independently; `params` and `pfa` are passed to the
    objectives explicitly, so concurrent calls never share state.

    Raises
    ------
    DomainError
        pfa outside (0, 1).
    NonConvergenceError
        A bound could not be found to within `ftol` (attribute ``bound`` names it).
    """
    pfa = _check_pfa(pfa)
    kw = dict(x0=x0, ftol=ftol, maxiter=maxiter)

    if method == "newton":
        lo_obj, hi_obj = _lower_root, _upper_root
        if params.alpha < 0:
            lo_obj, hi_obj = hi_obj, lo_obj
        lower = _newton_then_bracket("lower", lo_obj, _lower_residual, params, pfa, **kw)
        upper = _newton_then_bracket("upper", hi_obj, _upper_residual, params, pfa, **kw)
    elif method == "bracket":
        lower = _bracket_bound("lower", _lower_residual, params, pfa, **kw)
        upper = _bracket_bound("upper", _upper_residual, params, pfa, **kw)
    else:
        raise ValueError(f"Unknown threshold method: {method!r}")
    return lower, upper


# ============================================================
# PUBLIC API
# ============================================================

@overload
def compute_sk_thresholds(
    M: float = ..., N: float = ..., d: float = ..., pfa: float = ...,
    *,
    method: Literal["newton", "bracket"] = ...,
    return_meta: Literal[True],
    err4_warn: Optional[float] = ...,
    exact: bool = ...,
) -> Tuple[float, float, Dict]: ...
@overload
def compute_sk_thresholds(
    M: float = ..., N: float = ..., d: float = ..., pfa: float = ...,
    *,
    method: Literal["newton", "bracket"] = ...,
    return_meta: Literal[False] = ...,
    err4_warn: Optional[float] = ...,
    exact: bool = ...,
) -> Tuple[float, float]: ...

def compute_sk_thresholds(
    M: float = DEFAULT_M,
    N: float = DEFAULT_N,
    d: float = DEFAULT_D,
    pfa: float = DEFAULT_PFA,
    *,
    method: Literal["newton", "bracket"] = "newton",
    return_meta: bool = False,
    err4_warn: Optional[float] = None,
    exact: bool = False,
):
    """
    Compute SK non-Gaussianity thresholds.

    Parameters
    ----------
    M : float, default 6104
        Off-board accumulation length (> 1).
    N : float, default 1
        On-board accumulation count (> 0).
    d : float, default 1.0
        Gamma shape factor of the raw samples (> 0); 0.5 for time-domain
        (chi-square) data, 1 for spectral (exponential) data.
    pfa : float, default 0.0013499
        One-sided false-alarm probability in (0, 1).
    method : {'newton', 'bracket'}
        Root-finding strategy (see module docstring).
    return_meta : bool
        Also return a dict with moments, Type III parameters, β invariants and
        the fourth-moment fit error.
    err4_warn : float or None
        Emit a NumericalWarning when the fourth-moment error (percent)
        exceeds this value.
    exact : bool
        Evaluate the moments at extended precision (mpmath).

    Return:
      (lower, upper) or (lower, upper, meta)

    Raises:
      DomainError for M <= 1, N*d <= 0, pfa outside (0, 1), or the zero-skew
      point m3 == 0 where no Type III law exists.
    """
    M = _as_float("M", M, above=1.0)
    N = _as_float("N", N)
    d = _as_float("d", d)
    pfa = _check_pfa(pfa)
    Nd = N * d

    moments = compute_moments(M, Nd, exact=exact)
    params = type3_params(moments)
    err4 = fourth_moment_error(moments, params)
    logger.debug("M=%g Nd=%g: delta=%.6g beta=%.6g alpha=%.6g err4=%.3g%%",
                 M, Nd, params.delta, params.beta, params.alpha, err4)

    if err4_warn is not None and err4 > err4_warn:
        warnings.warn(
            f"Type III fit misses m4 by {err4:.3g}% (limit {err4_warn:g}%) "
            f"for M={M:g}, N*d={Nd:g}",
            NumericalWarning,
            stacklevel=2,
        )

    lower, upper = solve_thresholds(params, pfa, method=method)

    if not return_meta:
        return lower, upper

    beta1, beta2 = beta_invariants(moments)
    meta = {
        "M": M, "N": N, "d": d, "pfa": pfa,
        "method": method,
        "moments": asdict(moments),
        "type3": asdict(params),
        "beta": {"beta1": beta1, "beta2": beta2},
        "err4": err4,
        "std_sk": moments.std,
    }
    return lower, upper, meta
