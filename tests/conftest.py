"""Shared fixtures: a recording in-memory AssetStore and temp-dir settings."""

import json

import pytest

from lifestory.config import Settings
from lifestory.core.document_store import DocumentStore
from lifestory.core.library import ShowLibrary
from lifestory.core.lifecycle import LifecycleCoordinator
from lifestory.core.series_repository import SeriesRepository
from lifestory.services.asset_store import StoredAsset, generate_key


class FakeAssetStore:
    """In-memory AssetStore that records every call.

    References are ``mem://<key>``; bare ``folder/name`` keys resolve too.
    Keys listed in ``failing`` make ``delete`` return False, keys in
    ``raising`` make it raise.
    """

    PREFIX = "mem://"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.failing: set[str] = set()
        self.raising: set[str] = set()
        self.fail_puts_after: int | None = None

    def put(self, data, folder, original_name, content_type=None):
        if self.fail_puts_after is not None and len(self.objects) >= self.fail_puts_after:
            raise RuntimeError("storage unavailable")
        key = generate_key(folder, original_name)
        self.objects[key] = data
        return StoredAsset(key=key, url=self.url_for(key))

    def delete(self, key):
        self.deleted.append(key)
        if key in self.raising:
            raise RuntimeError(f"boom: {key}")
        if key in self.failing:
            return False
        self.objects.pop(key, None)
        return True

    def url_for(self, key):
        return f"{self.PREFIX}{key}"

    def key_from_reference(self, ref):
        if not ref:
            return None
        if ref.startswith(self.PREFIX):
            return ref[len(self.PREFIX):]
        if "/" in ref and not ref.startswith("/"):
            return ref
        return None


@pytest.fixture
def fake_store():
    return FakeAssetStore()


@pytest.fixture
def coordinator(fake_store):
    return LifecycleCoordinator(fake_store)


@pytest.fixture
def repo(coordinator):
    return SeriesRepository(coordinator)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "uploads" / "showData.json"


@pytest.fixture
def document_store(data_file):
    return DocumentStore(data_file)


@pytest.fixture
def empty_document_store(document_store, data_file):
    """DocumentStore backed by a file holding ``{"series": []}``."""
    data_file.parent.mkdir(parents=True, exist_ok=True)
    data_file.write_text(json.dumps({"series": []}), encoding="utf-8")
    return document_store


@pytest.fixture
def library(empty_document_store, fake_store):
    return ShowLibrary(empty_document_store, fake_store)


@pytest.fixture
def test_settings(tmp_path, data_file):
    """Settings with temp directories and local storage."""
    return Settings(
        data_file=str(data_file),
        uploads_dir=str(tmp_path / "uploads"),
        logs_dir=str(tmp_path / "logs"),
        storage_backend="local",
    )
