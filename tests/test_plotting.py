import math

import numpy as np

from lockin import plotting
from lockin.config import build_config
from lockin.trace import QueryResult, write_outputs


def _make_run(tmp_path, responses):
    results = []
    for i, resp in enumerate(responses):
        if resp is None:
            results.append(QueryResult(index=i, ok=False, error="reset", t_s=i * 0.5, timestamp=f"t{i}"))
        else:
            results.append(QueryResult(index=i, ok=True, error=None, t_s=i * 0.5, timestamp=f"t{i}",
                                       n_bytes=len(resp), response=resp))
    run_dir = tmp_path / "2026-01-01_120000_sample"
    write_outputs(run_dir, build_config({}, env={}), results, elapsed_s=1.0)
    return run_dir


def test_load_trace_coerces_replies_to_numbers(tmp_path):
    run_dir = _make_run(tmp_path, ["1.0E-06\n", "", "OVERLOAD\n", None, "3.0E-06\n"])

    df = plotting.load_trace(run_dir)

    np.testing.assert_allclose(df["value"].to_numpy()[[0, 4]], [1e-6, 3e-6])
    assert df["value"].isna().to_numpy()[[1, 2, 3]].all()


def test_summarize_ignores_non_numeric(tmp_path):
    run_dir = _make_run(tmp_path, ["1.0\n", "2.0\n", "3.0\n", "junk\n"])

    summary = plotting.summarize(plotting.load_trace(run_dir))

    assert summary["samples"] == 4
    assert summary["ok"] == 4
    assert summary["valid"] == 3
    assert summary["mean"] == 2.0
    assert summary["std"] == 1.0
    assert (summary["min"], summary["max"]) == (1.0, 3.0)


def test_summarize_with_no_valid_values(tmp_path):
    run_dir = _make_run(tmp_path, ["", None])

    summary = plotting.summarize(plotting.load_trace(run_dir))

    assert summary["valid"] == 0
    assert math.isnan(summary["mean"])


def test_main_writes_summary_and_plot(tmp_path):
    run_dir = _make_run(tmp_path, ["1.0\n", "1.5\n", "0.5\n"])

    plotting.main(["--run", str(run_dir)])

    assert (run_dir / "summary" / "summary.csv").exists()
    assert (run_dir / "summary" / "plots" / "trace.png").stat().st_size > 0
