#!/usr/bin/env python3
"""
Offline analysis for a trace run folder.

- Loads runs/<RUN_ID>/trace.csv
- Converts the reply text to numbers (unparseable / empty replies become NaN)
- Writes:
  - runs/<RUN_ID>/summary/summary.csv
  - runs/<RUN_ID>/summary/plots/trace.png
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from lockin.run_layout import TRACE_CSV, summary_dir


def load_trace(run_dir: Path) -> pd.DataFrame:
    csv_path = run_dir / TRACE_CSV
    if not csv_path.exists():
        raise FileNotFoundError(f"No {TRACE_CSV} in {run_dir}")

    df = pd.read_csv(csv_path, keep_default_na=False, na_values=[""])
    df["value"] = pd.to_numeric(df["response"].fillna("").astype(str).str.strip(), errors="coerce")
    return df


def summarize(df: pd.DataFrame) -> Dict[str, Any]:
    vals = df["value"].to_numpy(dtype=float)
    valid = vals[np.isfinite(vals)]
    has = valid.size > 0
    return {
        "samples": int(len(df)),
        "ok": int(df["ok"].astype(bool).sum()),
        "valid": int(valid.size),
        "mean": float(np.mean(valid)) if has else float("nan"),
        "std": float(np.std(valid, ddof=1)) if valid.size > 1 else float("nan"),
        "min": float(np.min(valid)) if has else float("nan"),
        "max": float(np.max(valid)) if has else float("nan"),
    }


def plot_trace(df: pd.DataFrame, out_png: Path, title: str = "Lock-in X vs time") -> None:
    out_png.parent.mkdir(parents=True, exist_ok=True)
    ok = df[np.isfinite(df["value"].to_numpy(dtype=float))]

    plt.figure()
    plt.plot(ok["t_s"], ok["value"], marker="o", markersize=3)
    plt.xlabel("Time (s)")
    plt.ylabel("X (instrument units)")
    plt.title(title)
    plt.grid(True)
    plt.tight_layout()
    plt.savefig(out_png)
    plt.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Summarize and plot a lock-in trace run.")
    ap.add_argument("--run", required=True, help="Path to runs/<RUN_ID>")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    run_dir = Path(args.run)

    df = load_trace(run_dir)
    summary = summarize(df)

    out_summary = summary_dir(run_dir)
    out_plots = out_summary / "plots"
    out_plots.mkdir(parents=True, exist_ok=True)

    summary_path = out_summary / "summary.csv"
    pd.DataFrame([summary]).to_csv(summary_path, index=False)
    plot_trace(df, out_plots / "trace.png", title=f"Lock-in X vs time ({run_dir.name})")

    print(f"[PLOT] {summary['valid']}/{summary['samples']} numeric samples, mean={summary['mean']:g}")
    print(f"✅ Wrote {summary_path}")
    print(f"✅ Plots in {out_plots}")


if __name__ == "__main__":
    main()
