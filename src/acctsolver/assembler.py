"""Turn conversation history plus a new turn into typed backend content."""

from __future__ import annotations

from collections.abc import Iterable

from .attachments import (
    AttachmentKind,
    classify,
    decode_text,
    resolve_media_type,
    strip_data_url,
)
from .backend import GenerateConfig, GenerateRequest
from .models import Attachment, ContentPart, InlineBinaryPart, Message, Role, TextPart, Turn

LEGACY_IMAGE_MEDIA_TYPE = "image/jpeg"


def file_marker(name: str) -> str:
    return f"[Attached File: {name}]"


def attachment_parts(attachment: Attachment) -> list[ContentPart]:
    """Encode one attachment as text (decoded) or as marker plus inline bytes."""
    media_type = resolve_media_type(attachment.media_type, attachment.name)
    payload = strip_data_url(attachment.data)
    if classify(media_type) is AttachmentKind.TEXTUAL:
        content = decode_text(payload)
        return [TextPart(f"{file_marker(attachment.name)}\n{content}\n[End of File]")]
    return [
        TextPart(file_marker(attachment.name)),
        InlineBinaryPart(media_type=media_type, data=payload),
    ]


def _turn(
    role: Role,
    text: str,
    attachment: Attachment | None = None,
    inline_image: str | None = None,
) -> Turn:
    parts: list[ContentPart] = []
    if attachment is not None:
        parts.extend(attachment_parts(attachment))
    elif inline_image:
        parts.append(
            InlineBinaryPart(
                media_type=LEGACY_IMAGE_MEDIA_TYPE, data=strip_data_url(inline_image)
            )
        )
    # Every turn ends with its own text, even when empty.
    parts.append(TextPart(text))
    return Turn(role=role, parts=tuple(parts))


def message_turn(message: Message) -> Turn:
    return _turn(message.role, message.text, message.attachment, message.inline_image)


def assemble(
    history: Iterable[Message],
    current_text: str,
    current_attachment: Attachment | None = None,
    role: Role = Role.USER,
) -> list[Turn]:
    """Build the ordered turns for a request: history first, current turn last."""
    turns = [message_turn(message) for message in history]
    turns.append(_turn(role, current_text, current_attachment))
    return turns


def build_request(
    model: str,
    history: Iterable[Message],
    current_text: str,
    current_attachment: Attachment | None = None,
    *,
    system_instruction: str | None = None,
    temperature: float | None = None,
) -> GenerateRequest:
    """Assemble a multi-turn request for the inference backend."""
    return GenerateRequest(
        model=model,
        turns=tuple(assemble(history, current_text, current_attachment)),
        system_instruction=system_instruction,
        config=GenerateConfig(temperature=temperature),
    )
