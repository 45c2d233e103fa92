import json

import pytest

from facewatch.errors import CorruptStateError
from facewatch.persistence import REGISTRY_RECORD, RegistryStore, RegistryWriter, restore_registry
from facewatch.recognition.registry import IdentityRegistry
from helpers import unit


def test_missing_state_means_empty_registry(tmp_path):
    registry, error = restore_registry(RegistryStore(tmp_path / "state.json"))
    assert registry.is_empty()
    assert error is None


def test_corrupt_state_falls_back_to_empty_and_reports(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    registry, error = restore_registry(RegistryStore(path))
    assert registry.is_empty()
    assert isinstance(error, CorruptStateError)


def test_inconsistent_record_is_reported(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps({REGISTRY_RECORD: [{"name": "Ann", "embeddings": [[1.0]], "references": []}]}),
        encoding="utf-8",
    )
    registry, error = restore_registry(RegistryStore(path))
    assert registry.is_empty()
    assert isinstance(error, CorruptStateError)


def test_store_keeps_other_records(tmp_path):
    store = RegistryStore(tmp_path / "nested" / "state.json")
    store.save_record("settings", {"threshold": 0.7})
    store.save_record(REGISTRY_RECORD, [])
    assert store.load_record("settings") == {"threshold": 0.7}
    assert store.load_record(REGISTRY_RECORD) == []
    assert store.load_record("absent") is None


def test_writer_persists_mutations(tmp_path):
    store = RegistryStore(tmp_path / "state.json")
    registry = IdentityRegistry()
    with RegistryWriter(registry, store) as writer:
        registry.enroll("Ann", unit(0), "ann.jpg")
        registry.enroll("Ann", unit(1), "ann2.jpg")
        registry.enroll("Bob", unit(2), "bob.jpg")
        assert writer.flush(timeout=5.0)

        restored, error = restore_registry(store)
        assert error is None
        assert restored == registry

        registry.remove("Ann")
        registry.remove("Bob")

    restored, _ = restore_registry(store)
    assert restored.is_empty()
    assert store.load_record(REGISTRY_RECORD) == []


def test_writer_surfaces_write_errors(tmp_path):
    class BrokenStore(RegistryStore):
        def save_record(self, name, payload):
            raise OSError("disk full")

    registry = IdentityRegistry()
    writer = RegistryWriter(registry, BrokenStore(tmp_path / "state.json"))
    registry.enroll("Ann", unit(0), "ann.jpg")
    with pytest.raises(OSError):
        writer.flush(timeout=5.0)
    writer.close()


def test_writer_stops_listening_after_close(tmp_path):
    store = RegistryStore(tmp_path / "state.json")
    registry = IdentityRegistry()
    writer = RegistryWriter(registry, store)
    writer.close()
    registry.enroll("Ann", unit(0), "ann.jpg")
    assert store.load_record(REGISTRY_RECORD) is None
