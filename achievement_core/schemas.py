from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from achievement_core.errors import ApiError, validation_error


class AttachmentMeta(BaseModel):
    file_name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    mime_type: str = "application/octet-stream"
    uploaded_at: datetime | None = None

    def to_record(self, *, default_uploaded_at: str) -> dict[str, Any]:
        """Plain dict with ``uploaded_at`` as an ISO string, defaulted when absent."""
        return {
            "file_name": self.file_name,
            "url": self.url,
            "mime_type": self.mime_type,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else default_uploaded_at,
        }


class AchievementContent(BaseModel):
    achievement_type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    points: float = Field(default=0, ge=0)
    attachments: list[AttachmentMeta] = Field(default_factory=list)

    @field_validator("achievement_type", "title")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in value:
            cleaned = tag.strip()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen


def _first_error_field(exc: ValidationError) -> str | None:
    errors = exc.errors()
    if not errors:
        return None
    loc = errors[0].get("loc") or ()
    return ".".join(str(part) for part in loc) or None


def parse_content(payload: AchievementContent | dict[str, Any]) -> AchievementContent:
    if isinstance(payload, AchievementContent):
        return payload
    if not isinstance(payload, dict):
        raise validation_error("achievement content must be an object")
    try:
        return AchievementContent.model_validate(payload)
    except ValidationError as exc:
        field = _first_error_field(exc)
        raise validation_error(f"invalid achievement content: {field or 'body'}", field=field) from None


def parse_attachment(payload: AttachmentMeta | dict[str, Any]) -> AttachmentMeta:
    if isinstance(payload, AttachmentMeta):
        return payload
    if not isinstance(payload, dict):
        raise validation_error("attachment metadata must be an object")
    try:
        return AttachmentMeta.model_validate(payload)
    except ValidationError as exc:
        field = _first_error_field(exc)
        raise validation_error(f"invalid attachment metadata: {field or 'body'}", field=field) from None


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }


def envelope_for_error(exc: ApiError, *, trace_id: str) -> dict[str, Any]:
    details = {"field": exc.field} if exc.field else None
    return error_envelope(
        code=exc.code,
        message=exc.message,
        error_class=exc.error_class,
        retryable=exc.retryable,
        trace_id=trace_id,
        details=details,
    )
