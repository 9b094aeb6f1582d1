"""
Exhibit Repository — read access to the exhibit catalog.

Catalog documents are maintained by the admin seeding/upload tooling and use
camelCase fields (``fileName``, ``planType``, ``includeType``,
``displayOrder``, ``isRequired``). The DOCX payload lives in ``fileData`` as
BSON binary or a base64 string; listings project it out.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from agreement_assembly.config import get_settings
from agreement_assembly.engine.exhibit_detect import detect_from_filename
from agreement_assembly.errors import ExhibitFetchError
from agreement_assembly.models.schemas import ExhibitRecord
from agreement_assembly.persistence.mongo_client import MongoClient

logger = logging.getLogger(__name__)


def record_from_document(doc: dict[str, Any]) -> ExhibitRecord:
    """Map a stored catalog document onto an ExhibitRecord."""
    file_name = doc.get("fileName") or doc.get("file_name") or ""
    detected = detect_from_filename(file_name) if file_name else None

    combinations = doc.get("combinations")
    if not combinations and detected and detected.combination:
        combinations = [detected.combination]

    category = doc.get("category") or (detected.category.value if detected else "")
    return ExhibitRecord(
        id=str(doc.get("_id") or doc.get("id") or ""),
        name=doc.get("name") or (detected.name if detected else file_name),
        description=doc.get("description") or "",
        file_name=file_name,
        category=category,
        combinations=list(combinations or []),
        plan_type=doc.get("planType") or doc.get("plan_type") or None,
        include_type=doc.get("includeType") or doc.get("include_type") or None,
        display_order=doc.get("displayOrder", doc.get("display_order", 0)),
        is_required=bool(doc.get("isRequired", doc.get("is_required", False))),
        keywords=list(doc.get("keywords") or []),
    )


def decode_file_data(payload: Any) -> bytes:
    """BSON Binary / bytes / base64 string (optionally a data URL) → raw bytes."""
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, str):
        text = payload.split(",", 1)[1] if payload.startswith("data:") else payload
        return base64.b64decode(text, validate=False)
    if isinstance(payload, dict) and "$binary" in payload:
        inner = payload["$binary"]
        return base64.b64decode(inner["base64"] if isinstance(inner, dict) else inner)
    raise ValueError(f"Unsupported fileData type: {type(payload).__name__}")


class ExhibitRepository:
    """Read interface over the exhibit catalog."""

    def list_exhibits(self) -> list[ExhibitRecord]:
        raise NotImplementedError

    def get_exhibit_file(self, exhibit_id: str) -> bytes:
        raise NotImplementedError


class InMemoryExhibitRepository(ExhibitRepository):
    """Backs mock mode and tests."""

    def __init__(self, exhibits: Optional[list[tuple[ExhibitRecord, bytes]]] = None):
        self._records: dict[str, ExhibitRecord] = {}
        self._files: dict[str, bytes] = {}
        for record, data in exhibits or []:
            self.add(record, data)

    def add(self, record: ExhibitRecord, data: bytes) -> None:
        self._records[record.id] = record
        self._files[record.id] = data

    def list_exhibits(self) -> list[ExhibitRecord]:
        return list(self._records.values())

    def get_exhibit_file(self, exhibit_id: str) -> bytes:
        if exhibit_id not in self._files:
            raise ExhibitFetchError(exhibit_id, "not found")
        return self._files[exhibit_id]


class MongoExhibitRepository(ExhibitRepository):
    """Exhibit catalog stored in the ``exhibits`` MongoDB collection."""

    def __init__(self, client: Optional[MongoClient] = None, collection: str = ""):
        self.settings = get_settings()
        self._client = client or MongoClient()
        self._collection_name = collection or self.settings.exhibits_collection

    @property
    def collection(self):
        collection = self._client.get_collection(self._collection_name)
        if collection is None:
            raise RuntimeError("MongoDB is not configured (mock mode is on)")
        return collection

    def list_exhibits(self) -> list[ExhibitRecord]:
        records = []
        for doc in self.collection.find({}, {"fileData": 0}).sort("displayOrder", 1):
            try:
                records.append(record_from_document(doc))
            except ValueError as e:
                logger.warning(f"Skipping malformed exhibit document {doc.get('_id')}: {e}")
        logger.info(f"Loaded {len(records)} exhibits from {self._collection_name}")
        return records

    def get_exhibit_file(self, exhibit_id: str) -> bytes:
        try:
            query_id: Any = ObjectId(exhibit_id)
        except (InvalidId, TypeError):
            query_id = exhibit_id

        try:
            doc = self.collection.find_one({"_id": query_id}, {"fileData": 1})
        except PyMongoError as e:
            raise ExhibitFetchError(exhibit_id, f"database error: {e}") from e
        if not doc:
            raise ExhibitFetchError(exhibit_id, "not found")

        try:
            data = decode_file_data(doc.get("fileData"))
        except (ValueError, binascii.Error) as e:
            raise ExhibitFetchError(exhibit_id, f"undecodable file data: {e}") from e
        if not data:
            raise ExhibitFetchError(exhibit_id, "empty file data")
        return data


def get_exhibit_repository() -> ExhibitRepository:
    """Mongo-backed catalog, or an empty in-memory one in mock mode."""
    if get_settings().mock_mode:
        return InMemoryExhibitRepository()
    return MongoExhibitRepository()
