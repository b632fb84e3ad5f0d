"""Pytest configuration and shared fixtures for FXP transfer tool tests."""

import json
import pytest
from pathlib import Path
from typing import Callable

from tests.fakes import ScriptedChannel


# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_PORT = 2121
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"


@pytest.fixture
def journal() -> list:
    """Shared, ordered record of commands seen by all scripted channels."""
    return []


@pytest.fixture
def make_channel(journal: list) -> Callable[..., ScriptedChannel]:
    """Factory for scripted channels sharing the test's journal."""

    def factory(name: str, *lines, **kwargs) -> ScriptedChannel:
        kwargs.setdefault("journal", journal)
        return ScriptedChannel(name, lines=lines, **kwargs)

    return factory


@pytest.fixture
def config_data() -> dict:
    """A complete, valid configuration mapping."""
    return {
        "connection_timeout": "3s",
        "fxp_transfer_timeout": "2m",
        "source": {
            "address": "10.0.0.1:2121",
            "username": TEST_FTP_USER,
            "password": TEST_FTP_PASS,
        },
        "destination": {
            "address": "10.0.0.2",
            "username": "dstuser",
            "is_tls": True,
            "insecure": True,
        },
        "files": ["movies/trailer.mkv", "music/"],
    }


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict) -> Path:
    """Write ``config_data`` to a temporary config.json."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config_data), encoding="utf-8")
    return path
