#!/usr/bin/env python3
"""
Poll the lock-in N times and save the replies as a run folder.

Creates:
runs/<RUN_ID>/
  config.yaml
  trace.csv
  run_manifest.json

Every sample is an independent one-shot query (new TCP connection each time).
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

import pandas as pd

from lockin.config import LockinConfig, RunConfig, apply_overrides, dump_config, load_config
from lockin.devices.lockin_tcp import as_text, read_lockin
from lockin.run_layout import CONFIG_YAML, MANIFEST_JSON, TRACE_CSV, local_run_dir, make_run_id

TRACE_COLUMNS = ["index", "t_s", "timestamp", "ok", "n_bytes", "response", "error"]


@dataclass
class QueryResult:
    index: int
    ok: bool
    error: Optional[str]
    t_s: float
    timestamp: str
    n_bytes: int = 0
    response: str = ""


# -----------------------------
# Acquisition core
# -----------------------------

def query_once(
    lk: LockinConfig,
    index: int,
    t0: float,
    reader: Optional[Callable[..., List[str]]] = None,
) -> QueryResult:
    reader = reader or read_lockin
    t_s = time.perf_counter() - t0
    stamp = datetime.now().isoformat(timespec="milliseconds")
    try:
        chars = reader(
            host=lk.host,
            port=lk.port,
            command=lk.command,
            read_timeout=lk.read_timeout_s,
            connect_timeout=lk.connect_timeout_s,
            bufsize=lk.bufsize,
        )
    except OSError as e:
        return QueryResult(index=index, ok=False, error=str(e), t_s=t_s, timestamp=stamp)

    return QueryResult(index=index, ok=True, error=None, t_s=t_s, timestamp=stamp,
                       n_bytes=len(chars), response=as_text(chars))


def run_trace(
    cfg: RunConfig,
    dry_run: bool = False,
    should_stop: Callable[[], bool] = lambda: False,
    reader: Optional[Callable[..., List[str]]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[QueryResult]:
    lk = cfg.lockin
    tr = cfg.trace
    results: List[QueryResult] = []

    if dry_run:
        print(f"DRY RUN: would query {lk.host}:{lk.port} with {lk.command!r} "
              f"{tr.samples} times every {tr.interval_s:g} s")
        return results

    t0 = time.perf_counter()
    for i in range(tr.samples):
        if should_stop():
            print("[STOP] interrupted before sample")
            break

        res = query_once(lk, index=i, t0=t0, reader=reader)
        results.append(res)

        if res.ok:
            print(f"[TRACE] {i:5d}  t={res.t_s:8.3f}s  {res.response.strip()!r} ({res.n_bytes} bytes)")
        else:
            print(f"[TRACE] {i:5d}  FAIL: {res.error}")
            if tr.fail_fast:
                break

        if i + 1 < tr.samples and tr.interval_s > 0:
            next_t = t0 + (i + 1) * tr.interval_s
            remaining = next_t - time.perf_counter()
            if remaining > 0:
                sleep(remaining)

    return results


# -----------------------------
# IO helpers
# -----------------------------

def results_frame(results: List[QueryResult]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in results], columns=TRACE_COLUMNS)


def write_outputs(run_dir: Path, cfg: RunConfig, results: List[QueryResult], elapsed_s: float) -> Path:
    run_dir.mkdir(parents=True, exist_ok=True)
    dump_config(cfg, run_dir / CONFIG_YAML)

    out_csv = run_dir / TRACE_CSV
    results_frame(results).to_csv(out_csv, index=False)

    manifest = {
        "run_dir": str(run_dir),
        "lockin": {"host": cfg.lockin.host, "port": cfg.lockin.port, "command": cfg.lockin.command},
        "requested_samples": cfg.trace.samples,
        "executed_samples": len(results),
        "ok": sum(1 for r in results if r.ok),
        "fail": sum(1 for r in results if not r.ok),
        "empty": sum(1 for r in results if r.ok and r.n_bytes == 0),
        "elapsed_s": elapsed_s,
        "results": [asdict(r) for r in results],
    }
    (run_dir / MANIFEST_JSON).write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return out_csv


# -----------------------------
# CLI
# -----------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Poll the lock-in amplifier and save replies to runs/<RUN_ID>/.")
    ap.add_argument("--config", default=None, help="YAML run config")
    ap.add_argument("--host", default=None, help="Override lock-in host")
    ap.add_argument("--port", type=int, default=None, help="Override lock-in TCP port")
    ap.add_argument("--command", default=None, help="Override query command")
    ap.add_argument("--samples", type=int, default=None, help="Override number of samples")
    ap.add_argument("--interval", type=float, default=None, help="Override seconds between samples")
    ap.add_argument("--sample-name", default=None, help="Override sample name used in the run id")
    ap.add_argument("--out", default=None, help="Override local runs directory")
    ap.add_argument("--fail-fast", action="store_true", help="Stop at first failed query")
    ap.add_argument("--dry-run", action="store_true", help="Do not connect; just show what would happen")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        cfg = load_config(Path(args.config) if args.config else None)
        if args.samples is not None:
            cfg.trace.samples = args.samples
        if args.interval is not None:
            cfg.trace.interval_s = args.interval
        if args.sample_name:
            cfg.trace.sample_name = args.sample_name
        if args.out:
            cfg.output.local_runs_dir = args.out
        if args.fail_fast:
            cfg.trace.fail_fast = True
        apply_overrides(cfg, host=args.host, port=args.port, command=args.command)
    except ValueError as e:
        print(f"[TRACE] config error: {e}", file=sys.stderr)
        return 2

    if args.dry_run:
        run_trace(cfg, dry_run=True)
        return 0

    run_dir = local_run_dir(cfg.output.local_runs_dir, make_run_id(cfg.trace.sample_name))

    stop = threading.Event()

    def _request_stop(signum: int, _frame: Any) -> None:
        stop.set()
        print(f"[Signal] received {signum}; stopping...")

    prev_sigint = signal.signal(signal.SIGINT, _request_stop)
    prev_sigterm = signal.signal(signal.SIGTERM, _request_stop)

    t0 = time.perf_counter()
    try:
        results = run_trace(cfg, should_stop=stop.is_set, sleep=stop.wait)
    finally:
        signal.signal(signal.SIGINT, prev_sigint)
        signal.signal(signal.SIGTERM, prev_sigterm)
    dt = time.perf_counter() - t0

    out_csv = write_outputs(run_dir, cfg, results, elapsed_s=dt)
    n_ok = sum(1 for r in results if r.ok)
    print(f"\nWrote {out_csv} ({n_ok}/{len(results)} ok)")
    print(f"Wrote manifest: {run_dir / MANIFEST_JSON}")
    return 0 if n_ok == len(results) else 1


if __name__ == "__main__":
    sys.exit(main())
