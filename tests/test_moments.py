import numpy as np
import pytest

from gskthresh.errors import DomainError
from gskthresh.thresholds import (
    compute_moments, type3_params, fourth_moment_error, beta_invariants,
)
from gskthresh.simulator import simulate
from gskthresh.core import get_sk


def test_moments_closed_form_small_M():
    # M=2, Nd=1 evaluated by hand from the rational expressions
    mom = compute_moments(2, 1)
    assert mom.m1 == 1.0
    assert mom.m2 == pytest.approx(16 / 20, rel=1e-14)
    assert mom.m3 == pytest.approx(384 / 840, rel=1e-14)
    assert mom.m4 == pytest.approx(82944 / 60480, rel=1e-14)


@pytest.mark.parametrize("M,Nd", [(2, 1.0), (64, 0.5), (6104, 1.0), (1024, 64.0)])
def test_exact_moments_agree_with_float(M, Nd):
    fast = compute_moments(M, Nd)
    exact = compute_moments(M, Nd, exact=True)
    for name in ("m2", "m3", "m4"):
        assert getattr(fast, name) == pytest.approx(getattr(exact, name), rel=1e-9)


def test_variance_large_M_limit():
    M, Nd = 1e6, 2.0
    m2 = compute_moments(M, Nd).m2
    assert m2 == pytest.approx(2.0 * (1.0 + Nd) / (M * Nd), rel=1e-3)


def test_moments_match_simulated_sk():
    M, N = 64, 1
    sim = simulate(M, N, 1.0, nblocks=50_000, seed=7)
    sk = get_sk(sim["s1"], sim["s2"], M, N=N, d=1.0).ravel()
    mom = compute_moments(M, N)
    assert abs(sk.mean() - 1.0) < 0.005
    assert np.var(sk) == pytest.approx(mom.m2, rel=0.05)


def test_type3_params_reproduce_three_moments():
    mom = compute_moments(6104, 1.0)
    p = type3_params(mom)
    # mean, variance and third central moment of delta + alpha*Gamma(beta)
    assert p.mean == pytest.approx(1.0, rel=1e-12)
    assert p.alpha ** 2 * p.beta == pytest.approx(mom.m2, rel=1e-12)
    assert 2 * p.alpha ** 3 * p.beta == pytest.approx(mom.m3, rel=1e-12)
    assert p.std == pytest.approx(mom.std, rel=1e-12)
    assert p.shape == p.beta


def test_beta_invariants_relate_to_type3_shape():
    mom = compute_moments(256, 8.0)
    beta1, beta2 = beta_invariants(mom)
    assert type3_params(mom).beta == pytest.approx(4.0 / beta1, rel=1e-12)
    assert beta2 > 3.0


def test_fourth_moment_error_small_for_large_M():
    mom = compute_moments(6104, 1.0)
    err4 = fourth_moment_error(mom, type3_params(mom))
    assert 0.0 <= err4 < 1.0


@pytest.mark.parametrize("M,Nd", [(1, 1.0), (0.5, 1.0), (64, 0.0), (64, -1.0), (64, np.nan)])
def test_moments_domain(M, Nd):
    with pytest.raises(DomainError):
        compute_moments(M, Nd)
