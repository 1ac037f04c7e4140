from __future__ import annotations

import select
import socket
from typing import List, Optional

DEFAULT_HOST = "169.254.11.17"
DEFAULT_PORT = 50000
DEFAULT_COMMAND = "X."
DEFAULT_READ_TIMEOUT_S = 0.25
DEFAULT_BUFSIZE = 4096


def read_lockin(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    command: str = DEFAULT_COMMAND,
    read_timeout: float = DEFAULT_READ_TIMEOUT_S,
    connect_timeout: Optional[float] = None,
    bufsize: int = DEFAULT_BUFSIZE,
) -> List[str]:
    """
    Query the lock-in amplifier once over a fresh TCP connection.

    Sends ``command`` followed by a newline, then does a single read of
    whatever bytes are available within ``read_timeout`` seconds. There is no
    read-until-terminator loop: a reply that arrives in several TCP segments
    is cut after the first one, and a reply that is not there yet gives [].

    Returns one character per received byte (Latin-1, no multi-byte decoding).

    Raises ConnectionError if the endpoint cannot be reached, and OSError if
    the write or read fails once connected. The socket is always closed.
    """
    try:
        sock = socket.create_connection((host, int(port)), timeout=connect_timeout)
    except OSError as e:
        raise ConnectionError(f"Failed to connect to lock-in at {host}:{port} ({e})") from e

    try:
        sock.settimeout(None)
        sock.sendall((command + "\n").encode("ascii"))

        r, _, _ = select.select([sock], [], [], max(0.0, float(read_timeout)))
        data = sock.recv(bufsize) if r else b""
    finally:
        sock.close()

    return list(data.decode("latin-1"))


def as_text(chars: List[str]) -> str:
    return "".join(chars)
