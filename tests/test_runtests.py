import numpy as np
import pytest

from gskthresh import runtests
from gskthresh.thresholds import compute_sk_thresholds


def test_sk_false_alarm_basic():
    """Smoke test for plain SK test with 2-D output."""
    res = runtests.run_sk_test(M=128, N=64, d=1.0, nblocks=2000, seed=42, nf=3)
    assert isinstance(res, dict)
    for k in ("s1", "s2", "sk", "flags", "lower", "upper", "below", "above", "total",
              "pfa_empirical", "pfa_expected", "M", "N", "d", "sim"):
        assert k in res
    assert res["sk"].shape == (2000, 3)
    assert np.isfinite(res["sk"]).all()
    assert res["total"] == 6000
    assert res["below"] == int((res["flags"] == -1).sum())
    assert res["above"] == int((res["flags"] == +1).sum())
    assert res["pfa_expected"] == pytest.approx(2 * res["pfa"])
    assert (res["lower"], res["upper"]) == compute_sk_thresholds(128, 64, 1.0, res["pfa"])


def test_renorm_sk_test_estimates_d():
    res = runtests.run_sk_test(M=256, N=1, d=0.5, nblocks=4000, seed=8, renorm=True)
    assert res["renorm"] is True
    assert res["d"] == pytest.approx(0.5, rel=0.1)
    assert np.median(res["sk"]) == pytest.approx(1.0, rel=1e-10)


def test_precomputed_input():
    M = 64
    s1 = np.full((10, 2), float(M))
    s2 = np.full((10, 2), 2.0 * M ** 2 / (M + 1))
    res = runtests.run_sk_test(M=M, N=1, precomputed={"s1": s1, "s2": s2})
    np.testing.assert_allclose(res["sk"], 1.0)
    assert res["below"] == res["above"] == 0


def test_tolerance_raises_on_mismatch():
    with pytest.raises(AssertionError):
        runtests.run_sk_test(M=64, N=16, nblocks=2000, pfa=0.05, tolerance=1e-6)


def test_verbose_prints(capsys):
    runtests.run_sk_test(M=64, N=16, nblocks=500, verbose=True)
    out = capsys.readouterr().out
    assert "[run_sk_test]" in out
    assert "thresholds" in out


def test_sweep_rows():
    rows = runtests.sweep_thresholds(M=64, N=16, d=1.0, pfa_range=(1e-4, 1e-2), steps=5,
                                     logspace=True, nblocks=2000, seed=1)
    assert len(rows) == 5
    pfas = [r["pfa"] for r in rows]
    assert pfas[0] == pytest.approx(1e-4) and pfas[-1] == pytest.approx(1e-2)
    lowers = [r["lower"] for r in rows]
    uppers = [r["upper"] for r in rows]
    assert lowers == sorted(lowers)
    assert uppers == sorted(uppers, reverse=True)
    assert all(r["total"] == 2000 for r in rows)
    # counts can only grow as the thresholds tighten
    flagged = [r["below"] + r["above"] for r in rows]
    assert flagged == sorted(flagged)


def test_sweep_without_simulation():
    rows = runtests.sweep_thresholds(M=6104, N=1, pfa_range=(1e-3, 2e-3), steps=2,
                                     simulate_counts=False)
    assert len(rows) == 2
    assert "total" not in rows[0]
    assert rows[0]["std"] > 0


def test_sweep_rejects_zero_steps():
    with pytest.raises(ValueError):
        runtests.sweep_thresholds(steps=0, simulate_counts=False)
