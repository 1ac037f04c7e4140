#!/usr/bin/env python3
"""
query.py
- Sends one command to the lock-in (default "X.") and prints what came back.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from lockin.config import apply_overrides, load_config
from lockin.devices.lockin_tcp import as_text, read_lockin


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Send a single query to the lock-in amplifier over TCP.")
    ap.add_argument("--config", default=None, help="YAML run config (lockin section is used)")
    ap.add_argument("--host", default=None, help="Override lock-in host")
    ap.add_argument("--port", type=int, default=None, help="Override lock-in TCP port")
    ap.add_argument("--command", default=None, help="Override query command (default X.)")
    ap.add_argument("--raw", action="store_true", help="Print only the reply text")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        cfg = load_config(Path(args.config) if args.config else None)
        apply_overrides(cfg, host=args.host, port=args.port, command=args.command)
    except ValueError as e:
        print(f"[LOCKIN] config error: {e}", file=sys.stderr)
        return 2
    lk = cfg.lockin

    if not args.raw:
        print(f"[LOCKIN] {lk.host}:{lk.port} <- {lk.command!r}")
    try:
        chars = read_lockin(
            host=lk.host,
            port=lk.port,
            command=lk.command,
            read_timeout=lk.read_timeout_s,
            connect_timeout=lk.connect_timeout_s,
            bufsize=lk.bufsize,
        )
    except OSError as e:
        print(f"[LOCKIN] ERROR: {e}", file=sys.stderr)
        return 1

    text = as_text(chars)
    if args.raw:
        sys.stdout.write(text)
    else:
        print(f"[LOCKIN] -> {text!r} ({len(chars)} bytes)")
        if not chars:
            print("[LOCKIN] nothing available yet (reply may arrive after the read window)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
