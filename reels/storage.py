import json
import logging
import uuid
from pathlib import Path
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional

from .config import get_settings

logger = logging.getLogger(__name__)

COLLECTIONS = ("videos", "users", "comments", "sessions")


def load_json(path: Path) -> List[dict]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return []
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable collection file %s", path)
        return []


def save_json(path: Path, data):
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")


def new_id() -> str:
    return uuid.uuid4().hex[:24]


class DocumentStore:
    """In-memory documents per collection, written through to one JSON file each.

    Every write replaces a single document, which is the only atomicity the
    API relies on.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self._docs: Dict[str, Dict[str, dict]] = {name: {} for name in COLLECTIONS}
        if self.data_dir is not None:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for name in COLLECTIONS:
                for doc in load_json(self._path(name)):
                    self._docs[name][doc["_id"]] = doc

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _flush(self, collection: str):
        if self.data_dir is None:
            return
        save_json(self._path(collection), list(self._docs[collection].values()))

    def count(self, collection: str) -> int:
        return len(self._docs[collection])

    def all(self, collection: str) -> List[dict]:
        return list(self._docs[collection].values())

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return self._docs[collection].get(doc_id)

    def find(self, collection: str, **match: Any) -> Iterable[dict]:
        for doc in self._docs[collection].values():
            if all(doc.get(k) == v for k, v in match.items()):
                yield doc

    def find_one(self, collection: str, **match: Any) -> Optional[dict]:
        return next(iter(self.find(collection, **match)), None)

    def insert(self, collection: str, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", new_id())
        self._docs[collection][doc["_id"]] = doc
        self._flush(collection)
        return doc

    def save(self, collection: str, doc: dict) -> dict:
        self._docs[collection][doc["_id"]] = doc
        self._flush(collection)
        return doc

    def delete(self, collection: str, doc_id: str) -> bool:
        removed = self._docs[collection].pop(doc_id, None)
        if removed is not None:
            self._flush(collection)
        return removed is not None


@lru_cache(maxsize=1)
def get_store() -> DocumentStore:
    return DocumentStore(Path(get_settings().data_dir))
