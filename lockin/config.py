"""
Run configuration (YAML).

Layout, every key optional (null means the default):

    lockin:
      host: 169.254.11.17
      port: 50000
      command: "X."
      read_timeout_s: 0.25
      connect_timeout_s: null
      bufsize: 4096
    trace:
      sample_name: sample
      samples: 100
      interval_s: 0.5
      fail_fast: false
    output:
      local_runs_dir: runs

LOCKIN_HOST / LOCKIN_PORT in the environment override the file.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from lockin.devices.lockin_tcp import (
    DEFAULT_BUFSIZE,
    DEFAULT_COMMAND,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT_S,
)


@dataclass
class LockinConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    command: str = DEFAULT_COMMAND
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    connect_timeout_s: Optional[float] = None
    bufsize: int = DEFAULT_BUFSIZE


@dataclass
class TraceConfig:
    sample_name: str = "sample"
    samples: int = 100
    interval_s: float = 0.5
    fail_fast: bool = False


@dataclass
class OutputConfig:
    local_runs_dir: str = "runs"


@dataclass
class RunConfig:
    lockin: LockinConfig = field(default_factory=LockinConfig)
    trace: TraceConfig = field(default_factory=TraceConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = raw.get(name) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"config section '{name}' must be a mapping, got {type(sec).__name__}")
    return sec


def _get(sec: Dict[str, Any], key: str, default: Any) -> Any:
    value = sec.get(key)
    return default if value is None else value


def _convert(conv: Callable[[Any], Any], value: Any, name: str) -> Any:
    try:
        return conv(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name}: invalid value {value!r} ({e})") from e


def build_config(raw: Optional[Dict[str, Any]] = None, env: Optional[Dict[str, str]] = None) -> RunConfig:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config must be a mapping, got {type(raw).__name__}")
    env = os.environ if env is None else env

    lk = _section(raw, "lockin")
    tr = _section(raw, "trace")
    out = _section(raw, "output")

    connect_timeout = lk.get("connect_timeout_s")
    cfg = RunConfig(
        lockin=LockinConfig(
            host=_convert(str, env.get("LOCKIN_HOST") or _get(lk, "host", DEFAULT_HOST), "lockin.host"),
            port=_convert(int, env.get("LOCKIN_PORT") or _get(lk, "port", DEFAULT_PORT), "lockin.port"),
            command=_convert(str, _get(lk, "command", DEFAULT_COMMAND), "lockin.command"),
            read_timeout_s=_convert(float, _get(lk, "read_timeout_s", DEFAULT_READ_TIMEOUT_S), "lockin.read_timeout_s"),
            connect_timeout_s=(_convert(float, connect_timeout, "lockin.connect_timeout_s")
                               if connect_timeout is not None else None),
            bufsize=_convert(int, _get(lk, "bufsize", DEFAULT_BUFSIZE), "lockin.bufsize"),
        ),
        trace=TraceConfig(
            sample_name=_convert(str, _get(tr, "sample_name", "sample"), "trace.sample_name"),
            samples=_convert(int, _get(tr, "samples", 100), "trace.samples"),
            interval_s=_convert(float, _get(tr, "interval_s", 0.5), "trace.interval_s"),
            fail_fast=bool(_get(tr, "fail_fast", False)),
        ),
        output=OutputConfig(local_runs_dir=_convert(str, _get(out, "local_runs_dir", "runs"), "output.local_runs_dir")),
    )
    validate(cfg)
    return cfg


def validate(cfg: RunConfig) -> None:
    lk = cfg.lockin
    if not lk.host:
        raise ValueError("lockin.host must not be empty")
    if not lk.command or not lk.command.isascii():
        raise ValueError(f"lockin.command must be non-empty ASCII text, got {lk.command!r}")
    if not (0 < lk.port < 65536):
        raise ValueError(f"lockin.port out of range: {lk.port}")
    if lk.read_timeout_s < 0:
        raise ValueError("lockin.read_timeout_s must be >= 0")
    if lk.connect_timeout_s is not None and lk.connect_timeout_s <= 0:
        raise ValueError("lockin.connect_timeout_s must be > 0 or null")
    if lk.bufsize < 1:
        raise ValueError("lockin.bufsize must be >= 1")
    if cfg.trace.samples < 1:
        raise ValueError("trace.samples must be >= 1")
    if cfg.trace.interval_s < 0:
        raise ValueError("trace.interval_s must be >= 0")


def load_config(path: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> RunConfig:
    if path is None:
        return build_config({}, env=env)
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return build_config(raw, env=env)


def apply_overrides(
    cfg: RunConfig,
    host: Optional[str] = None,
    port: Optional[int] = None,
    command: Optional[str] = None,
) -> RunConfig:
    if host:
        cfg.lockin.host = host
    if port is not None:
        cfg.lockin.port = int(port)
    if command is not None:
        cfg.lockin.command = command
    validate(cfg)
    return cfg


def dump_config(cfg: RunConfig, path: Path) -> None:
    path.write_text(yaml.safe_dump(cfg.to_dict(), sort_keys=False), encoding="utf-8")
