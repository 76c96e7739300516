#!/usr/bin/env python3
"""
Exceptions and warnings raised by gskthresh.

All errors derive from :class:`GSKError`. :class:`DomainError` also derives
from ``ValueError`` and :class:`NonConvergenceError` from ``RuntimeError`` so
callers that already catch the builtin types keep working.
"""

from __future__ import annotations
from typing import Optional

__all__ = ["GSKError", "DomainError", "NonConvergenceError", "NumericalWarning"]


class GSKError(Exception):
    """Base class for gskthresh errors."""


class DomainError(GSKError, ValueError):
    """Input outside the domain of the SK moment formulas or estimator."""


class NonConvergenceError(GSKError, RuntimeError):
    """
    A threshold root search did not reach the residual tolerance.

    Attributes
    ----------
    bound : {'lower', 'upper'}
        Which threshold failed.
    x : float or None
        Last iterate returned by the solver.
    residual : float or None
        Objective value at ``x``.
    """

    def __init__(
        self,
        bound: str,
        message: str,
        *,
        x: Optional[float] = None,
        residual: Optional[float] = None,
    ) -> None:
        super().__init__(f"{bound} threshold: {message}")
        self.bound = bound
        self.x = x
        self.residual = residual


class NumericalWarning(RuntimeWarning):
    """The Pearson Type III fit reproduces the fourth moment poorly."""
