#!/usr/bin/env python3
"""
Dummy lock-in amplifier (no hardware).

Listens on TCP and answers each received command line, so the query client,
the trace loop and the tests can run without the real instrument.

Modes:
- sine:   reply with a synthetic X reading (sinusoid + gaussian noise)
- fixed:  reply with the given bytes verbatim
- silent: accept the command, never reply
- reset:  read the command, then drop the connection with a TCP reset
"""

from __future__ import annotations

import argparse
import math
import socket
import struct
import threading
import time
from typing import List, Literal, Optional

import numpy as np

Mode = Literal["sine", "fixed", "silent", "reset"]


class DummyLockin:
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        mode: Mode = "sine",
        reply: Optional[bytes] = None,
        amplitude: float = 1e-6,
        freq_hz: float = 0.5,
        noise: float = 2e-8,
        seed: int = 0,
        verbose: bool = False,
    ):
        if mode == "fixed" and reply is None:
            raise ValueError("mode 'fixed' needs a reply")
        self.mode = mode
        self.reply = reply
        self.amplitude = float(amplitude)
        self.freq_hz = float(freq_hz)
        self.noise = float(noise)
        self.verbose = verbose
        self._rng = np.random.default_rng(seed)
        self._t0 = time.perf_counter()

        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server.bind((host, int(port)))
        self._server.listen(8)
        self._server.settimeout(0.1)

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._cond = threading.Condition()
        self.received: List[bytes] = []
        self.connections = 0
        self.closed = 0

    @property
    def address(self):
        return self._server.getsockname()[:2]

    @property
    def host(self) -> str:
        return self.address[0]

    @property
    def port(self) -> int:
        return int(self.address[1])

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def start(self) -> "DummyLockin":
        self._thread = threading.Thread(target=self._serve, name="dummy-lockin", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._server.close()

    def __enter__(self) -> "DummyLockin":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def wait_closed(self, count: int = 1, timeout: float = 2.0) -> bool:
        """Block until ``count`` client connections have been seen closing."""
        with self._cond:
            return self._cond.wait_for(lambda: self.closed >= count, timeout=timeout)

    # -----------------------------
    # Serving
    # -----------------------------

    def synthetic_reading(self) -> bytes:
        t = time.perf_counter() - self._t0
        x = self.amplitude * math.sin(2 * math.pi * self.freq_hz * t) + self._rng.normal(0, self.noise)
        return f"{x:.6E}\n".encode("ascii")

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, peer = self._server.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with self._cond:
                self.connections += 1
            if self.verbose:
                print(f"[DUMMY] connection from {peer[0]}:{peer[1]}")
            self._handle(conn)

    def _handle(self, conn: socket.socket) -> None:
        conn.settimeout(0.1)
        buf = bytearray()
        try:
            while not self._stop.is_set():
                try:
                    chunk = conn.recv(1024)
                except socket.timeout:
                    continue
                if not chunk:
                    break
                buf.extend(chunk)
                while b"\n" in buf:
                    line, _, rest = bytes(buf).partition(b"\n")
                    buf = bytearray(rest)
                    with self._cond:
                        self.received.append(line + b"\n")
                    if self.verbose:
                        print(f"[DUMMY] received {line!r}")
                    if self.mode == "reset":
                        conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
                        return
                    if self.mode == "silent":
                        continue
                    conn.sendall(self.reply if self.mode == "fixed" else self.synthetic_reading())
        except OSError as e:
            if self.verbose:
                print(f"[DUMMY] connection error: {e}")
        finally:
            conn.close()
            with self._cond:
                self.closed += 1
                self._cond.notify_all()


# -----------------------------
# CLI
# -----------------------------

def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Serve a fake lock-in amplifier on TCP for offline runs.")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=50000)
    ap.add_argument("--mode", choices=["sine", "fixed", "silent", "reset"], default="sine")
    ap.add_argument("--reply", default=None, help="Reply text for --mode fixed (a newline is appended)")
    ap.add_argument("--amplitude", type=float, default=1e-6, help="Synthetic X amplitude in volts")
    ap.add_argument("--freq-hz", type=float, default=0.5, help="Synthetic X modulation frequency")
    ap.add_argument("--noise", type=float, default=2e-8, help="Gaussian noise sigma in volts")
    ap.add_argument("--seed", type=int, default=0)
    return ap.parse_args()


def main() -> None:
    args = parse_args()
    reply = (args.reply + "\n").encode("ascii") if args.reply is not None else None

    dummy = DummyLockin(
        host=args.host,
        port=args.port,
        mode=args.mode,
        reply=reply,
        amplitude=args.amplitude,
        freq_hz=args.freq_hz,
        noise=args.noise,
        seed=args.seed,
        verbose=True,
    )
    dummy.start()
    print(f"[DUMMY] lock-in listening on {dummy.host}:{dummy.port} (mode={args.mode}), Ctrl-C to stop")
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("[DUMMY] stopping...")
    finally:
        dummy.stop()
    print(f"[DUMMY] served {dummy.connections} connections")


if __name__ == "__main__":
    main()
