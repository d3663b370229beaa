"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from config.settings import AppConfig
from tests.fakes import API, PUBLIC, FakeClock


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(
        api_base_url=API,
        public_proxy_url=PUBLIC,
        history_path=tmp_path / "storage.json",
        download_dir=tmp_path / "downloads",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
