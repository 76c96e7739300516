import json

import pytest

from gskthresh.cli.main import main
from gskthresh.thresholds import compute_sk_thresholds


def test_thresholds_table(capsys):
    main(["sk-thresholds", "--M", "6104", "--N", "1", "--d", "1", "--pfa", "0.0013499"])
    out = capsys.readouterr().out
    assert "SK thresholds for M=6104, N=1, d=1" in out
    lo, hi = compute_sk_thresholds()
    assert f"{lo:.10f}" in out
    assert f"{hi:.10f}" in out


def test_thresholds_json(capsys):
    main(["sk-thresholds", "--M", "128", "--N", "64", "--logspace", "1e-4", "1e-2", "3", "--json"])
    payload = json.loads(capsys.readouterr().out)
    # --pfa default plus three log-spaced points
    assert len(payload) == 4
    for row in payload:
        lo, hi = compute_sk_thresholds(128, 64, 1.0, row["pfa"])
        assert row["lower"] == pytest.approx(lo, abs=1e-9)
        assert row["upper"] == pytest.approx(hi, abs=1e-9)


def test_thresholds_csv(capsys):
    main(["sk-thresholds", "--M", "256", "--N", "1", "--pfa-list", "1e-3", "1e-2", "--csv",
          "--precision", "6"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0] == "pfa,lower,upper"
    assert len(lines) == 4


def test_thresholds_meta_and_bracket(capsys):
    main(["sk-thresholds", "--M", "256", "--N", "1", "--method", "bracket", "--meta"])
    out = capsys.readouterr().out
    assert "[Meta Information]" in out
    assert "method               : bracket" in out
    assert "m4 fit error" in out


def test_sk_test_json(capsys):
    main(["sk-test", "--M", "64", "--N", "16", "--nblocks", "2000", "--json"])
    summary = json.loads(capsys.readouterr().out)
    assert summary["total"] == 2000
    assert "sk" not in summary
    assert summary["pfa_expected"] == pytest.approx(2 * summary["pfa"])


def test_sk_test_text(capsys):
    main(["sk-test", "--M", "64", "--N", "16", "--nblocks", "500", "--renorm"])
    out = capsys.readouterr().out
    assert "Empirical two-sided PFA" in out


def test_sweep_json(capsys):
    main(["sk-thresholds-sweep", "--M", "64", "--N", "16", "--steps", "3",
          "--nblocks", "1000", "--json"])
    rows = json.loads(capsys.readouterr().out)
    assert len(rows) == 3
    assert all(r["total"] == 1000 for r in rows)


def test_sweep_summary(capsys):
    main(["sk-thresholds-sweep", "--M", "64", "--N", "16", "--steps", "2", "--no-sim"])
    assert "Sweep: 2 points" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [
    ["sk-thresholds", "--pfa", "0"],
    ["sk-thresholds", "--pfa", "1.5"],
    ["sk-thresholds", "--M", "1"],
    ["sk-thresholds", "--d", "-1"],
    ["sk-test", "--mode", "drift"],
])
def test_invalid_arguments_exit(argv):
    with pytest.raises(SystemExit):
        main(argv)


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(["--version"])
    assert capsys.readouterr().out.startswith("gskthresh")


@pytest.mark.parametrize("argv", [
    ["sk-thresholds", "--pfa-list", "0"],
    ["sk-thresholds", "--pfa-list", "1e-3", "2"],
    ["sk-thresholds", "--logspace", "0", "1e-2", "3"],
    ["sk-thresholds", "--logspace", "1e-4", "1e-2", "many"],
])
def test_bad_pfa_grid_is_reported_not_raised(argv, capsys):
    with pytest.raises(SystemExit) as ei:
        main(argv)
    assert ei.value.code == 1
    assert capsys.readouterr().err.startswith("error:")


def test_thresholds_json_negative_skew(capsys):
    main(["sk-thresholds", "--M", "11", "--N", "1", "--d", "0.05", "--json"])
    rows = json.loads(capsys.readouterr().out)
    assert all(r["lower"] < 1.0 < r["upper"] for r in rows)
