"""
Naming conventions for runs and file locations.
Keeps the filesystem layout consistent across trace + plotting.
"""

from pathlib import Path
from datetime import datetime
from typing import Optional

TRACE_CSV = "trace.csv"
MANIFEST_JSON = "run_manifest.json"
CONFIG_YAML = "config.yaml"


def make_run_id(sample_name: str, now: Optional[datetime] = None) -> str:
    ts = (now or datetime.now()).strftime("%Y-%m-%d_%H%M%S")
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in sample_name)
    return f"{ts}_{safe}"


def local_run_dir(local_runs_dir: str, run_id: str) -> Path:
    return Path(local_runs_dir) / run_id


def summary_dir(run_dir: Path) -> Path:
    return run_dir / "summary"
