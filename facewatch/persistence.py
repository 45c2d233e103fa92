"""Named-record JSON store and write-through persistence for the registry."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from facewatch.errors import CorruptStateError
from facewatch.io_utils import dump_json_atomic, load_json
from facewatch.recognition.codec import deserialize, serialize
from facewatch.recognition.registry import IdentityRegistry

LOGGER = logging.getLogger("facewatch.persistence")

REGISTRY_RECORD = "known_persons"


class RegistryStore:
    """A JSON document of named records; each save rewrites the file atomically."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = load_json(self.path)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CorruptStateError(f"Unable to parse {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CorruptStateError(f"{self.path} does not hold a record mapping")
        return data

    def load_record(self, name: str) -> Optional[Any]:
        """Return the stored payload, or None when the file or record is absent."""
        with self._lock:
            return self._read_all().get(name)

    def save_record(self, name: str, payload: Any) -> None:
        with self._lock:
            try:
                records = self._read_all()
            except CorruptStateError:
                LOGGER.warning("Overwriting unreadable state file %s", self.path)
                records = {}
            records[name] = payload
            dump_json_atomic(self.path, records)


def restore_registry(
    store: RegistryStore,
    dimension: Optional[int] = None,
) -> Tuple[IdentityRegistry, Optional[CorruptStateError]]:
    """Load the persisted registry, falling back to an empty one on corrupt state.

    The error is returned so the caller can report it.
    """
    try:
        records = store.load_record(REGISTRY_RECORD)
        if records is None:
            LOGGER.info("No saved identities in %s; starting empty", store.path)
            return IdentityRegistry(dimension=dimension), None
        registry = deserialize(records, dimension=dimension)
    except CorruptStateError as exc:
        LOGGER.error("Discarding saved identities from %s: %s", store.path, exc)
        return IdentityRegistry(dimension=dimension), exc
    LOGGER.info(
        "Restored %d identities (%d samples) from %s",
        len(registry),
        registry.embedding_count(),
        store.path,
    )
    return registry, None


class RegistryWriter:
    """Persists the registry on a background thread after each mutation.

    Bursts of mutations collapse into a single write of the latest snapshot.
    ``flush`` waits until everything mutated so far is on disk; ``close`` must be
    called for a clean shutdown.
    """

    def __init__(self, registry: IdentityRegistry, store: RegistryStore) -> None:
        self.registry = registry
        self.store = store
        self._cond = threading.Condition()
        self._requested = 0
        self._written = 0
        self._closed = False
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, name="facewatch-registry-writer", daemon=True)
        self._thread.start()
        registry.add_listener(self._on_mutation)

    def _on_mutation(self, _registry: IdentityRegistry) -> None:
        with self._cond:
            if self._closed:
                LOGGER.warning("Registry changed after writer closed; change not persisted")
                return
            self._requested += 1
            self._cond.notify_all()

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._requested == self._written and not self._closed:
                    self._cond.wait()
                if self._requested == self._written and self._closed:
                    return
                target = self._requested
            try:
                payload = serialize(self.registry)
                self.store.save_record(REGISTRY_RECORD, payload)
                LOGGER.debug("Persisted %d identities to %s", len(payload), self.store.path)
            except Exception as exc:  # noqa: BLE001 - surfaced through flush()/close()
                LOGGER.exception("Failed to persist registry to %s", self.store.path)
                with self._cond:
                    self._error = exc
            with self._cond:
                self._written = target
                self._cond.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until pending writes finish; re-raises the last write error."""
        with self._cond:
            target = self._requested
            done = self._cond.wait_for(lambda: self._written >= target, timeout=timeout)
            error, self._error = self._error, None
        if error is not None:
            raise error
        return done

    def close(self, timeout: Optional[float] = None) -> None:
        self.registry.remove_listener(self._on_mutation)
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout)
        if self._thread.is_alive():
            LOGGER.warning("Registry writer did not finish within %.1fs", timeout or 0.0)
        with self._cond:
            error, self._error = self._error, None
        if error is not None:
            raise error

    def __enter__(self) -> "RegistryWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
