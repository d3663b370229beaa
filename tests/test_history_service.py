"""History persistence round trips through durable storage."""

from __future__ import annotations

import json
from datetime import datetime

from modules.services.history_service import (
    HISTORY_STORAGE_KEY,
    GenerationHistoryService,
    ImageHistoryEntry,
    serialize_entry,
)
from modules.services.storage_service import DurableStorage

DATA_URL = "data:image/png;base64,iVBORw0KGgo="


def _entry(entry_id: str, url: str, prompt: str = "sunset") -> ImageHistoryEntry:
    return ImageHistoryEntry(
        id=entry_id,
        prompt=prompt,
        image_url=url,
        timestamp=datetime(2024, 5, 1, 12, 30, 15),
    )


def test_serialize_nulls_blob_urls():
    assert serialize_entry(_entry("1", "blob:abc"))["imageUrl"] is None
    assert serialize_entry(_entry("2", DATA_URL))["imageUrl"] == DATA_URL


def test_blob_only_session_restores_nothing(tmp_path):
    service = GenerationHistoryService(DurableStorage(tmp_path / "s.json"))
    service.save([_entry("1", "blob:a"), _entry("2", "blob:b")])

    assert service.load() == []


def test_placeholder_entry_is_restored(tmp_path):
    service = GenerationHistoryService(DurableStorage(tmp_path / "s.json"))
    original = _entry("2", DATA_URL, prompt="mountain lake")
    service.save([_entry("1", "blob:a"), original])

    restored = GenerationHistoryService(DurableStorage(tmp_path / "s.json")).load()

    assert restored == [original]
    assert isinstance(restored[0].timestamp, datetime)


def test_single_durable_key(tmp_path):
    path = tmp_path / "s.json"
    GenerationHistoryService(DurableStorage(path)).save([_entry("1", DATA_URL)])

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert list(stored) == [HISTORY_STORAGE_KEY]
    assert json.loads(stored[HISTORY_STORAGE_KEY])[0]["id"] == "1"


def test_corrupt_storage_resets_to_empty(tmp_path):
    path = tmp_path / "s.json"
    path.write_text("{not json", encoding="utf-8")

    assert GenerationHistoryService(DurableStorage(path)).load() == []


def test_corrupt_value_resets_to_empty(tmp_path):
    storage = DurableStorage(tmp_path / "s.json")
    storage.set_item(HISTORY_STORAGE_KEY, "[{broken")

    assert GenerationHistoryService(storage).load() == []


def test_entries_with_bad_timestamps_are_dropped(tmp_path):
    storage = DurableStorage(tmp_path / "s.json")
    storage.set_item(
        HISTORY_STORAGE_KEY,
        json.dumps(
            [
                {"id": "1", "prompt": "ok", "timestamp": "2024-05-01T12:00:00", "imageUrl": DATA_URL},
                {"id": "2", "prompt": "bad", "timestamp": "yesterday", "imageUrl": DATA_URL},
                "garbage",
            ]
        ),
    )

    restored = GenerationHistoryService(storage).load()
    assert [entry.id for entry in restored] == ["1"]


def test_save_failure_is_swallowed(tmp_path, caplog):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    service = GenerationHistoryService(DurableStorage(blocker / "nested" / "s.json"))

    service.save([_entry("1", DATA_URL)])

    assert "Failed to save history" in caplog.text


def test_save_after_corrupt_file_overwrites_it(tmp_path):
    path = tmp_path / "s.json"
    path.write_text("{not json", encoding="utf-8")
    service = GenerationHistoryService(DurableStorage(path))
    assert service.load() == []

    service.save([_entry("1", DATA_URL, prompt="kept")])

    assert [entry.prompt for entry in service.load()] == ["kept"]
    assert list(json.loads(path.read_text(encoding="utf-8"))) == [HISTORY_STORAGE_KEY]
