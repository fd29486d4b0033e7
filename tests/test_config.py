from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from portree.config import PortreeSettings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "PORTREE_REPO_PATH",
        "PORTREE_LOG_LEVEL",
        "PORTREE_BASE_PORTS",
        "PORTREE_ZONE_SIZE",
        "PORTREE_MAX_OFFSET",
        "PORTREE_RECENTS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults() -> None:
    settings = PortreeSettings()

    assert settings.base_ports == {"frontend": 3000, "backend": 4000, "admin": 5000, "api": 5500, "unknown": 6000}
    assert settings.zone_size == 100
    assert settings.default_base_ref == "origin/main"
    assert settings.env_file_name == ".env.local"
    assert settings.log_level == "INFO"


def test_log_level_is_normalized_and_validated(monkeypatch) -> None:
    monkeypatch.setenv("PORTREE_LOG_LEVEL", " debug ")
    assert PortreeSettings().log_level == "DEBUG"

    monkeypatch.setenv("PORTREE_LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        PortreeSettings()


def test_base_ports_from_json_env(monkeypatch) -> None:
    monkeypatch.setenv("PORTREE_BASE_PORTS", '{"Frontend": 8000, "worker": 9000}')

    assert PortreeSettings().base_ports == {"frontend": 8000, "worker": 9000}


@pytest.mark.parametrize(
    "ports, zone_size",
    [
        ('{"frontend": 3000, "backend": 3050}', "100"),
        ('{"frontend": 3000, "backend": 4000}', "1001"),
    ],
)
def test_overlapping_zones_are_rejected(monkeypatch, ports: str, zone_size: str) -> None:
    monkeypatch.setenv("PORTREE_BASE_PORTS", ports)
    monkeypatch.setenv("PORTREE_ZONE_SIZE", zone_size)

    with pytest.raises(ValidationError):
        PortreeSettings()


def test_invalid_zone_size_and_port(monkeypatch) -> None:
    monkeypatch.setenv("PORTREE_ZONE_SIZE", "0")
    with pytest.raises(ValidationError):
        PortreeSettings()

    monkeypatch.delenv("PORTREE_ZONE_SIZE")
    monkeypatch.setenv("PORTREE_BASE_PORTS", '{"frontend": 70000}')
    with pytest.raises(ValidationError):
        PortreeSettings()


def test_get_settings_resolves_and_caches(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PORTREE_REPO_PATH", str(tmp_path / "repo" / ".." / "repo"))

    settings = get_settings()

    assert settings.repo_path == (tmp_path / "repo").resolve()
    assert get_settings() is settings
