"""Shared fixtures for the QX Watcher test suite."""

import pytest

from qx_watcher.db import Repository
from qx_watcher.detection import WhaleClassifier
from qx_watcher.settings import SettingsStore


@pytest.fixture
def settings() -> SettingsStore:
    return SettingsStore()


@pytest.fixture
def classifier(settings) -> WhaleClassifier:
    return WhaleClassifier(settings)


@pytest.fixture
async def repository(tmp_path):
    repo = Repository(tmp_path / "events.db")
    await repo.initialize()
    yield repo
    await repo.close()
