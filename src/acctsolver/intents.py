"""Draft-prefix intents: detection, toggling and image-response parsing."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .backend import GenerateConfig, GenerateRequest, GenerateResponse
from .models import InlineBinaryPart, Role, TextPart, Turn
from .prompts import IMAGE_FALLBACK_TEXT


class Intent(str, Enum):
    """Request shape selected by the draft's leading prefix."""

    GENERATE_IMAGE = "generate_image"
    EXAM_NOTE = "exam_note"
    EXPLAIN_CONCEPT = "explain_concept"
    STANDARD = "standard"


INTENT_PREFIXES: dict[Intent, str] = {
    Intent.GENERATE_IMAGE: "Generate Image: ",
    Intent.EXAM_NOTE: "Exam Note: ",
    Intent.EXPLAIN_CONCEPT: "Explain the concept of ",
}


@dataclass(frozen=True)
class RequestIntent:
    intent: Intent
    prompt: str


@dataclass(frozen=True)
class ImageResult:
    text: str
    generated_image: str | None = None


def detect(draft: str) -> Intent:
    """Return the intent whose prefix anchors ``draft``.

    Prefixes are mutually exclusive, so at most one can match.
    """
    for intent, prefix in INTENT_PREFIXES.items():
        if draft.startswith(prefix):
            return intent
    return Intent.STANDARD


def route(draft: str) -> RequestIntent:
    intent = detect(draft)
    if intent is Intent.GENERATE_IMAGE:
        prompt = draft[len(INTENT_PREFIXES[intent]) :].strip()
        return RequestIntent(intent=intent, prompt=prompt)
    return RequestIntent(intent=intent, prompt=draft)


def toggle(draft: str, intent: Intent) -> str:
    """Add or remove ``intent``'s prefix, dropping any other intent prefix first."""
    if intent is Intent.STANDARD:
        raise ValueError("The standard intent has no prefix to toggle.")
    prefix = INTENT_PREFIXES[intent]
    text = draft
    for other, other_prefix in INTENT_PREFIXES.items():
        if other is not intent and text.startswith(other_prefix):
            text = text[len(other_prefix) :]
    if text.startswith(prefix):
        return text[len(prefix) :]
    return prefix + text


def build_image_request(
    prompt: str, model: str, aspect_ratio: str = "4:3"
) -> GenerateRequest:
    """Single-turn request carrying only the image prompt."""
    return GenerateRequest(
        model=model,
        turns=(Turn(role=Role.USER, parts=(TextPart(prompt),)),),
        config=GenerateConfig(aspect_ratio=aspect_ratio),
    )


def parse_image_response(response: GenerateResponse) -> ImageResult:
    """Concatenate text parts and keep the first inline image as a data URL."""
    text = ""
    image: str | None = None
    for part in response.parts:
        if isinstance(part, InlineBinaryPart):
            if image is None:
                image = part.as_data_url()
        elif isinstance(part, TextPart):
            text += part.text
    return ImageResult(text=text or IMAGE_FALLBACK_TEXT, generated_image=image)
