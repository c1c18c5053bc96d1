from __future__ import annotations

import json
import logging
import os
import pathlib
import tempfile
import time
import typing as t

from pymongo.errors import PyMongoError

from w1h_ai.models import SavedDocument, W1HAnswers, display_date

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "inquiryLifeDocs_v3"


class StorageError(RuntimeError):
    pass


class Storage(t.Protocol):
    def read(self) -> str | None: ...

    def write(self, payload: str) -> None: ...


class MemoryStorage:
    def __init__(self, payload: str | None = None) -> None:
        self.payload = payload

    def read(self) -> str | None:
        return self.payload

    def write(self, payload: str) -> None:
        self.payload = payload


class JsonFileStorage:
    """Keeps the whole collection in one JSON file, replaced atomically on write."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = pathlib.Path(path)

    def read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read {self.path}: {e}") from e

    def write(self, payload: str) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent, suffix=".tmp", delete=False
            ) as tmp:
                tmp.write(payload)
                tmp_path = tmp.name
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Could not write {self.path}: {e}") from e


class MongoStorage:
    """One document per storage key: ``{"_id": key, "value": "<json>"}``."""

    def __init__(self, db: t.Any, key: str = DEFAULT_STORAGE_KEY, collection: str = "storage") -> None:
        self.collection = db[collection]
        self.key = key

    def read(self) -> str | None:
        try:
            doc = self.collection.find_one({"_id": self.key})
        except PyMongoError as e:
            raise StorageError(f"MongoDB read failed: {e}") from e
        if not doc:
            return None
        return doc.get("value")

    def write(self, payload: str) -> None:
        try:
            self.collection.replace_one(
                {"_id": self.key},
                {"_id": self.key, "value": payload},
                upsert=True,
            )
        except PyMongoError as e:
            raise StorageError(f"MongoDB write failed: {e}") from e


class DocumentStore:
    """Saved worksheets, newest first.

    Every mutation rewrites the whole persisted collection (last writer wins).
    If the storage backend fails the store keeps working in memory only and
    stops writing, so a broken read can never be followed by a clobbering write.
    """

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self.persistent = True
        self._docs: list[SavedDocument] = []
        self._last_id = 0

    @property
    def documents(self) -> list[SavedDocument]:
        return list(self._docs)

    def _degrade(self, exc: Exception) -> None:
        logger.warning("Document storage unavailable, continuing in memory only: %s", exc)
        self.persistent = False

    def load(self) -> list[SavedDocument]:
        try:
            raw = self.storage.read()
            docs = self._decode(raw)
        except (StorageError, ValueError) as e:
            self._degrade(e)
            docs = []
        self._docs = docs
        self._last_id = max((d.id for d in docs), default=0)
        logger.info("Loaded %d saved documents", len(docs))
        return self.documents

    def _decode(self, raw: str | None) -> list[SavedDocument]:
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Stored documents are not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise ValueError("Stored documents are not a JSON array.")
        try:
            return [SavedDocument.from_dict(item) for item in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Stored document is malformed: {e}") from e

    def _flush(self) -> None:
        if not self.persistent:
            return
        payload = json.dumps([d.to_dict() for d in self._docs], ensure_ascii=False)
        try:
            self.storage.write(payload)
        except StorageError as e:
            self._degrade(e)

    def next_id(self) -> int:
        self._last_id = max(int(time.time() * 1000), self._last_id + 1)
        return self._last_id

    def new_document(self, article_title: str, answers: W1HAnswers) -> SavedDocument:
        return SavedDocument(
            id=self.next_id(),
            date=display_date(),
            article_title=article_title,
            answers=W1HAnswers.from_dict(answers.to_dict()),
        )

    def get(self, doc_id: int) -> SavedDocument | None:
        for doc in self._docs:
            if doc.id == doc_id:
                return doc
        return None

    def save(self, doc: SavedDocument) -> SavedDocument:
        if self.get(doc.id) is not None:
            raise ValueError(f"Document {doc.id} already exists.")
        self._docs.insert(0, doc)
        self._last_id = max(self._last_id, doc.id)
        self._flush()
        logger.info("Saved document %d (%s)", doc.id, doc.article_title)
        return doc

    def delete(self, doc_id: int) -> bool:
        remaining = [d for d in self._docs if d.id != doc_id]
        if len(remaining) == len(self._docs):
            return False
        self._docs = remaining
        self._flush()
        logger.info("Deleted document %d", doc_id)
        return True
