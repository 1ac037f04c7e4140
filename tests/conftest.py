"""Pytest configuration for the lock-in tools.

Puts the repository root on ``sys.path`` so ``pytest`` works without an
editable install, and provides a dummy-instrument fixture factory.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    root = Path(__file__).resolve().parents[1]
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_project_root_on_path()

from lockin.devices.dummy_lockin import DummyLockin  # noqa: E402


@pytest.fixture
def dummy_lockin():
    """Start a DummyLockin on a free loopback port; stopped after the test."""
    started = []

    def _start(**kwargs) -> DummyLockin:
        dummy = DummyLockin(host="127.0.0.1", port=0, **kwargs).start()
        started.append(dummy)
        return dummy

    yield _start

    for dummy in started:
        dummy.stop()


@pytest.fixture
def free_port() -> int:
    """A loopback port with nothing listening on it."""
    import socket

    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port
