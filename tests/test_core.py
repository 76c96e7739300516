import numpy as np
import pytest

from gskthresh.core import get_sk, renorm_sk, estimate_sk
from gskthresh.errors import DomainError
from gskthresh.simulator import simulate
from gskthresh.thresholds import compute_sk_thresholds


M0 = 6104
S1_NULL = float(M0)
S2_NULL = 2.0 * M0 ** 2 / (M0 + 1)


def test_estimator_null_mean_is_unity():
    assert estimate_sk(S1_NULL, S2_NULL, M0, 1.0) == pytest.approx(1.0, rel=1e-12)
    assert isinstance(get_sk(S1_NULL, S2_NULL, M0), float)


def test_estimator_formula():
    s1, s2, M, N, d = 100.0, 2.0, 6104, 2, 0.5
    expected = (M * N * d + 1) / (M - 1) * (M * s2 / s1 ** 2 - 1)
    assert get_sk(s1, s2, M, N=N, d=d) == pytest.approx(expected, rel=1e-14)


def test_estimator_elementwise():
    s1 = np.array([[S1_NULL, 2 * S1_NULL], [S1_NULL, S1_NULL]])
    s2 = np.array([[S2_NULL, 4 * S2_NULL], [S2_NULL, 2 * S2_NULL]])
    sk = estimate_sk(s1, s2, M0)
    assert sk.shape == (2, 2)
    # scaling both sums by the same gain leaves SK unchanged
    np.testing.assert_allclose(sk[0], [1.0, 1.0], rtol=1e-12)
    assert sk[1, 1] > 1.0


def test_get_sk_broadcasts_M_over_time():
    T, F = 4, 3
    M = np.array([64, 128, 256, 512], dtype=float).reshape(T, 1)
    s1 = np.broadcast_to(M, (T, F)).copy()
    s2 = 2.0 * s1 ** 2 / (s1 + 1.0)
    sk = get_sk(s1, s2, M)
    assert sk.shape == (T, F)
    np.testing.assert_allclose(sk, 1.0, rtol=1e-12)


@pytest.mark.parametrize("kwargs,match", [
    ({"s1": 0.0, "s2": 1.0, "M": 64}, "non-zero"),
    ({"s1": np.zeros(3), "s2": np.ones(3), "M": 64}, "non-zero"),
    ({"s1": np.ones(3), "s2": np.ones(4), "M": 64}, "shapes"),
    ({"s1": 1.0, "s2": 1.0, "M": 1}, "M"),
    ({"s1": 1.0, "s2": 1.0, "M": 64, "N": 0}, "N"),
    ({"s1": 1.0, "s2": 1.0, "M": 64, "d": -1.0}, "d"),
])
def test_get_sk_domain(kwargs, match):
    with pytest.raises(DomainError, match=match):
        get_sk(**kwargs)


def test_renorm_recovers_shape_factor():
    M, d_true = 256, 0.5
    sim = simulate(M, 1, d_true, nblocks=4000, seed=11)
    d_emp, sk = renorm_sk(sim["s1"], sim["s2"], M)
    assert d_emp == pytest.approx(d_true, rel=0.1)
    # the renormalized median is exactly one by construction
    assert np.median(sk) == pytest.approx(1.0, rel=1e-10)


def test_renorm_rejects_non_positive_d():
    # provisional median above M*N + 1 drives d below zero
    M = 4
    s1 = np.full(5, 1.0)
    s2 = np.full(5, 100.0)
    with pytest.raises(DomainError):
        renorm_sk(s1, s2, M)


def test_estimate_sk_normalize_uses_empirical_d():
    M = 256
    sim = simulate(M, 1, 0.5, nblocks=2000, seed=3)
    d_emp, sk_ren = renorm_sk(sim["s1"], sim["s2"], M)
    sk = estimate_sk(sim["s1"], sim["s2"], M, d=1.0, normalize=True)
    np.testing.assert_allclose(sk, sk_ren)


def test_estimate_sk_returns_thresholds():
    sk, (lo, hi) = estimate_sk(S1_NULL, S2_NULL, M0, 1.0, return_thresholds=True)
    assert sk == pytest.approx(1.0)
    assert (lo, hi) == compute_sk_thresholds(M0, 1, 1.0)
    assert lo < sk < hi


def test_estimate_sk_thresholds_with_normalize():
    M = 256
    sim = simulate(M, 1, 0.5, nblocks=2000, seed=5)
    d_emp, _ = renorm_sk(sim["s1"], sim["s2"], M)
    _, (lo, hi) = estimate_sk(sim["s1"], sim["s2"], M, normalize=True,
                              return_thresholds=True, pfa=1e-3)
    assert (lo, hi) == compute_sk_thresholds(M, 1, d_emp, 1e-3)


def test_estimate_sk_thresholds_need_scalar_M():
    M = np.array([[64.0], [128.0]])
    s1 = np.ones((2, 2)) * M
    s2 = 2.0 * s1 ** 2 / (s1 + 1.0)
    with pytest.raises(DomainError):
        estimate_sk(s1, s2, M, return_thresholds=True)
