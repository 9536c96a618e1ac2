"""Visit persistence.

The canonical visit list lives in a ``VisitStore``. Persistence goes through an
injected key-value ``BlobStore``; every mutation rewrites the whole collection
under a single key.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from core.visits import Visit, VisitNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "dpc_visits"


class BlobStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryBlobStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._blobs: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def set(self, key: str, value: str) -> None:
        self._blobs[key] = value


class JsonFileBlobStore:
    """One ``<key>.json`` document per key inside ``directory``."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)


class VisitStore:
    def __init__(self, blob_store: BlobStore, key: str = DEFAULT_STORAGE_KEY, seed: Optional[Iterable[Visit]] = None):
        self.blob_store = blob_store
        self.key = key
        self._seed = [Visit.from_dict(v.to_dict()) for v in (seed or [])]
        self._visits: List[Visit] = []
        self._lock = threading.RLock()

    def load(self) -> List[Visit]:
        with self._lock:
            return self._load()

    def _load(self) -> List[Visit]:
        raw = self.blob_store.get(self.key)
        visits: Optional[List[Visit]] = None
        if raw:
            try:
                visits = [Visit.from_dict(item) for item in json.loads(raw)]
            except (AttributeError, TypeError, ValueError):
                logger.warning("Stored visits under %r are unreadable, using seed data", self.key)
        if visits is None:
            visits = [Visit.from_dict(v.to_dict()) for v in self._seed]
            logger.info("Loaded %d seed visits", len(visits))
        else:
            logger.info("Loaded %d visits from %r", len(visits), self.key)
        self._visits = visits
        return self.all()

    def all(self) -> List[Visit]:
        return list(self._visits)

    def get(self, visit_id: int) -> Visit:
        for visit in self._visits:
            if visit.id == visit_id:
                return visit
        raise VisitNotFoundError(f"Visit {visit_id} not found")

    def exists(self, visit_id: int) -> bool:
        return any(v.id == visit_id for v in self._visits)

    def save(self, visits: Optional[Iterable[Visit]] = None) -> int:
        with self._lock:
            if visits is not None:
                self._visits = list(visits)
            payload = json.dumps([v.to_dict() for v in self._visits])
            self.blob_store.set(self.key, payload)
            logger.info("Saved %d visits to %r", len(self._visits), self.key)
            return len(self._visits)

    def add(self, visit: Visit) -> Visit:
        """Append ``visit``; an id already in use is bumped past the largest stored id."""
        with self._lock:
            if self.exists(visit.id):
                new_id = max(v.id for v in self._visits) + 1
                logger.info("Visit id %s already in use, assigning %s", visit.id, new_id)
                visit.id = new_id
            self._visits.append(visit)
            self.save()
            return visit

    def update(self, visit: Visit) -> Visit:
        with self._lock:
            if not self.exists(visit.id):
                raise VisitNotFoundError(f"Visit {visit.id} not found")
            self._visits = [visit if v.id == visit.id else v for v in self._visits]
            self.save()
            return visit

    def upsert(self, visit: Visit) -> str:
        with self._lock:
            if self.exists(visit.id):
                self.update(visit)
                return "updated"
            self.add(visit)
            return "added"

    def delete(self, visit_id: int) -> Visit:
        with self._lock:
            removed = self.get(visit_id)
            self._visits = [v for v in self._visits if v.id != visit_id]
            self.save()
            return removed
