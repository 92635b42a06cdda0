"""Immutable conversation records and backend content parts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


class Role(str, Enum):
    """Author of a message or turn."""

    USER = "user"
    MODEL = "model"


@dataclass(frozen=True)
class Attachment:
    """A file attached to a user message.

    ``data`` is either a data URL (``data:<type>;base64,<payload>``) or the raw
    base64 payload.
    """

    data: str
    media_type: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"data": self.data, "mediaType": self.media_type, "name": self.name}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Attachment:
        media_type = payload.get("mediaType", payload.get("mimeType", ""))
        return cls(
            data=str(payload.get("data", "")),
            media_type=str(media_type or ""),
            name=str(payload.get("name", "")),
        )


def _new_message_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Message:
    """A single chat message. Never mutated once created."""

    role: Role
    text: str
    id: str = field(default_factory=_new_message_id)
    created_at: datetime = field(default_factory=_utcnow)
    attachment: Attachment | None = None
    generated_image: str | None = None

    def __post_init__(self) -> None:
        if self.attachment is not None and self.role is not Role.USER:
            raise ValueError("Only user messages may carry an attachment.")

    @property
    def inline_image(self) -> str | None:
        """Inline image payload of an attachment-less message, if any."""
        if self.attachment is not None:
            return None
        return self.generated_image or None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.created_at.isoformat(),
        }
        if self.attachment is not None:
            payload["attachment"] = self.attachment.to_dict()
        if self.generated_image:
            payload["generatedImage"] = self.generated_image
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Message:
        """Rebuild a message from its snapshot form.

        Accepts the legacy ``image`` key as the inline image payload.
        """
        attachment_raw = payload.get("attachment")
        attachment = (
            Attachment.from_dict(attachment_raw)
            if isinstance(attachment_raw, dict)
            else None
        )
        image = payload.get("generatedImage") or payload.get("image")
        timestamp = payload.get("timestamp")
        created_at = (
            datetime.fromisoformat(timestamp)
            if isinstance(timestamp, str) and timestamp
            else _utcnow()
        )
        return cls(
            id=str(payload.get("id") or _new_message_id()),
            role=Role(str(payload.get("role", "")).strip().lower()),
            text=str(payload.get("text", "")),
            created_at=created_at,
            attachment=attachment,
            generated_image=str(image) if image else None,
        )


@dataclass(frozen=True)
class Session:
    """The whole conversation state owned by the session store."""

    messages: tuple[Message, ...] = ()
    active_topic: str | None = None
    is_busy: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [message.to_dict() for message in self.messages],
            "activeTopic": self.active_topic,
            "isBusy": self.is_busy,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Session:
        raw_messages = payload.get("messages", [])
        if not isinstance(raw_messages, list):
            raise ValueError("Snapshot messages must be a list.")
        messages = tuple(
            Message.from_dict(item) for item in raw_messages if isinstance(item, dict)
        )
        topic = payload.get("activeTopic", payload.get("selectedSubject"))
        return cls(
            messages=messages,
            active_topic=str(topic) if isinstance(topic, str) and topic else None,
            is_busy=bool(payload.get("isBusy", payload.get("isLoading", False))),
        )


@dataclass(frozen=True)
class TextPart:
    """Plain text content part."""

    text: str


@dataclass(frozen=True)
class InlineBinaryPart:
    """Opaque base64 payload with its media type (no data-URL prefix)."""

    media_type: str
    data: str

    def as_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


ContentPart = TextPart | InlineBinaryPart


@dataclass(frozen=True)
class Turn:
    """One role-tagged, ordered group of content parts."""

    role: Role
    parts: tuple[ContentPart, ...]
