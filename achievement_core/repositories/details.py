from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from achievement_core.db.mongo import MongoCollectionRunner
from achievement_core.errors import corrupt

logger = logging.getLogger(__name__)

CONTENT_FIELDS: tuple[str, ...] = ("achievement_type", "title", "description", "details", "tags", "points")

# Python record key -> MongoDB document field.
_DOCUMENT_FIELDS: dict[str, str] = {
    "student_id": "studentId",
    "achievement_type": "achievementType",
    "title": "title",
    "description": "description",
    "details": "details",
    "tags": "tags",
    "points": "points",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "deleted_at": "deletedAt",
}
_TIMESTAMP_FIELDS = frozenset({"created_at", "updated_at", "deleted_at"})


def parse_detail_ref(raw: Any) -> ObjectId:
    """Parse a stored detail reference into an ObjectId or raise Corrupt."""
    if isinstance(raw, ObjectId):
        return raw
    try:
        return ObjectId(str(raw or ""))
    except (InvalidId, TypeError):
        logger.error("detail_ref_corrupt detail_ref=%r", raw)
        raise corrupt(f"detail reference is not a valid document id: {raw!r}") from None


def new_detail_id() -> str:
    return str(ObjectId())


def _copy_detail(row: dict[str, Any]) -> dict[str, Any]:
    item = dict(row)
    item["details"] = dict(row.get("details") or {})
    item["tags"] = list(row.get("tags") or [])
    item["attachments"] = [dict(x) for x in row.get("attachments") or []]
    return item


def _to_datetime(value: Any) -> Any:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return value


def _to_iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _attachment_to_document(attachment: dict[str, Any]) -> dict[str, Any]:
    return {
        "fileName": attachment.get("file_name"),
        "fileUrl": attachment.get("url"),
        "fileType": attachment.get("mime_type"),
        "uploadedAt": _to_datetime(attachment.get("uploaded_at")),
    }


def _attachment_from_document(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "file_name": doc.get("fileName"),
        "url": doc.get("fileUrl"),
        "mime_type": doc.get("fileType"),
        "uploaded_at": _to_iso(doc.get("uploadedAt")),
    }


def _to_document(detail: dict[str, Any]) -> dict[str, Any]:
    doc: dict[str, Any] = {}
    for key, field in _DOCUMENT_FIELDS.items():
        if key not in detail:
            continue
        value = detail[key]
        doc[field] = _to_datetime(value) if key in _TIMESTAMP_FIELDS else value
    doc["attachments"] = [_attachment_to_document(x) for x in detail.get("attachments", [])]
    return doc


def _from_document(doc: dict[str, Any]) -> dict[str, Any]:
    item: dict[str, Any] = {"detail_id": str(doc.get("_id"))}
    for key, field in _DOCUMENT_FIELDS.items():
        value = doc.get(field)
        item[key] = _to_iso(value) if key in _TIMESTAMP_FIELDS else value
    item["details"] = item.get("details") or {}
    item["tags"] = list(item.get("tags") or [])
    item["attachments"] = [_attachment_from_document(x) for x in doc.get("attachments") or []]
    return item


class InMemoryDetailsRepository:
    def __init__(self, details: dict[str, dict[str, Any]]) -> None:
        self._details = details

    def insert(self, *, detail: dict[str, Any]) -> dict[str, Any]:
        item = _copy_detail(detail)
        item["detail_id"] = str(item.get("detail_id") or new_detail_id())
        item.setdefault("deleted_at", None)
        self._details[item["detail_id"]] = item
        return _copy_detail(item)

    def get(self, *, detail_id: str) -> dict[str, Any] | None:
        row = self._details.get(str(parse_detail_ref(detail_id)))
        if row is None or row.get("deleted_at") is not None:
            return None
        return _copy_detail(row)

    def get_many(self, *, detail_ids: list[str]) -> list[dict[str, Any]]:
        wanted = {str(parse_detail_ref(x)) for x in detail_ids}
        return [
            _copy_detail(row)
            for detail_id, row in self._details.items()
            if detail_id in wanted and row.get("deleted_at") is None
        ]

    def update_content(self, *, detail_id: str, content: dict[str, Any], updated_at: str) -> bool:
        row = self._details.get(str(parse_detail_ref(detail_id)))
        if row is None or row.get("deleted_at") is not None:
            return False
        for key in CONTENT_FIELDS:
            if key in content:
                row[key] = content[key]
        row["updated_at"] = updated_at
        return True

    def soft_delete(self, *, detail_id: str, deleted_at: str) -> bool:
        row = self._details.get(str(parse_detail_ref(detail_id)))
        if row is None:
            return False
        row["deleted_at"] = deleted_at
        row["updated_at"] = deleted_at
        return True

    def hard_delete(self, *, detail_id: str) -> bool:
        return self._details.pop(str(parse_detail_ref(detail_id)), None) is not None

    def push_attachment(self, *, detail_id: str, attachment: dict[str, Any], updated_at: str) -> bool:
        row = self._details.get(str(parse_detail_ref(detail_id)))
        if row is None or row.get("deleted_at") is not None:
            return False
        row.setdefault("attachments", []).append(dict(attachment))
        row["updated_at"] = updated_at
        return True

    def list_all(self) -> list[dict[str, Any]]:
        return [_copy_detail(x) for x in self._details.values()]


class MongoDetailsRepository:
    """Achievement detail documents in MongoDB; soft-deleted documents are invisible to reads."""

    def __init__(self, *, runner: MongoCollectionRunner) -> None:
        self._runner = runner

    def insert(self, *, detail: dict[str, Any]) -> dict[str, Any]:
        item = dict(detail)
        doc = _to_document(item)
        if item.get("detail_id"):
            doc["_id"] = parse_detail_ref(item["detail_id"])
        doc.setdefault("deletedAt", None)

        def _op(collection: Any) -> dict[str, Any]:
            result = collection.insert_one(doc)
            item["detail_id"] = str(result.inserted_id)
            item.setdefault("deleted_at", None)
            return item

        return self._runner.run(fn=_op)

    def get(self, *, detail_id: str) -> dict[str, Any] | None:
        oid = parse_detail_ref(detail_id)

        def _op(collection: Any) -> dict[str, Any] | None:
            doc = collection.find_one({"_id": oid, "deletedAt": None})
            return None if doc is None else _from_document(doc)

        return self._runner.run(fn=_op)

    def get_many(self, *, detail_ids: list[str]) -> list[dict[str, Any]]:
        oids = [parse_detail_ref(x) for x in detail_ids]
        if not oids:
            return []

        def _op(collection: Any) -> list[dict[str, Any]]:
            cursor = collection.find({"_id": {"$in": oids}, "deletedAt": None})
            return [_from_document(doc) for doc in cursor]

        return self._runner.run(fn=_op)

    def update_content(self, *, detail_id: str, content: dict[str, Any], updated_at: str) -> bool:
        oid = parse_detail_ref(detail_id)
        fields = {_DOCUMENT_FIELDS[key]: content[key] for key in CONTENT_FIELDS if key in content}
        fields["updatedAt"] = _to_datetime(updated_at)

        def _op(collection: Any) -> bool:
            result = collection.update_one({"_id": oid, "deletedAt": None}, {"$set": fields})
            return result.matched_count > 0

        return self._runner.run(fn=_op)

    def soft_delete(self, *, detail_id: str, deleted_at: str) -> bool:
        oid = parse_detail_ref(detail_id)
        stamp = _to_datetime(deleted_at)

        def _op(collection: Any) -> bool:
            result = collection.update_one({"_id": oid}, {"$set": {"deletedAt": stamp, "updatedAt": stamp}})
            return result.matched_count > 0

        return self._runner.run(fn=_op)

    def hard_delete(self, *, detail_id: str) -> bool:
        oid = parse_detail_ref(detail_id)

        def _op(collection: Any) -> bool:
            result = collection.delete_one({"_id": oid})
            return result.deleted_count > 0

        return self._runner.run(fn=_op)

    def push_attachment(self, *, detail_id: str, attachment: dict[str, Any], updated_at: str) -> bool:
        oid = parse_detail_ref(detail_id)
        update = {
            "$push": {"attachments": _attachment_to_document(attachment)},
            "$set": {"updatedAt": _to_datetime(updated_at)},
        }

        def _op(collection: Any) -> bool:
            result = collection.update_one({"_id": oid, "deletedAt": None}, update)
            return result.matched_count > 0

        return self._runner.run(fn=_op)

    def list_all(self) -> list[dict[str, Any]]:
        def _op(collection: Any) -> list[dict[str, Any]]:
            return [_from_document(doc) for doc in collection.find({})]

        return self._runner.run(fn=_op)
