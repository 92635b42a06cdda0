"""Conversation loop tying intents, assembly, the backend and the session."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from .assembler import build_request
from .attachments import strip_data_url
from .backend import GenerateRequest, InferenceBackend
from .intents import Intent, build_image_request, parse_image_response, route
from .models import Attachment, InlineBinaryPart, Message, Role, TextPart, Turn
from .prompts import (
    EMPTY_RESPONSE_TEXT,
    ERROR_RESPONSE_TEXT,
    OCR_PROMPT,
    SUMMARY_PROMPT,
    SYSTEM_INSTRUCTION,
    with_subject_context,
)
from .search import SearchState, filter_messages
from .session_store import SessionStore

LOGGER = logging.getLogger(__name__)


class HomeworkChat:
    """Send user turns to the backend and record both sides in the session.

    Backend failures never escape :meth:`send`; a model message carrying a
    fallback text is appended instead so the busy flag always clears.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        store: SessionStore,
        *,
        model: str,
        image_model: str | None = None,
        system_instruction: str = SYSTEM_INSTRUCTION,
        temperature: float | None = 0.3,
        image_aspect_ratio: str = "4:3",
    ) -> None:
        self.backend = backend
        self.store = store
        self.model = model
        self.image_model = image_model or model
        self.system_instruction = system_instruction
        self.temperature = temperature
        self.image_aspect_ratio = image_aspect_ratio
        self.search_state = SearchState()

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.store.messages

    def select_subject(self, name: str | None) -> None:
        self.store.set_topic(name)

    def search(self, term: str) -> Sequence[Message]:
        """Filter the current messages without touching the session."""
        self.search_state.update(self.store.messages, term)
        return filter_messages(self.store.messages, term)

    def next_match(self) -> Message | None:
        """Step to the next hit of the last :meth:`search`, wrapping around.

        Returns ``None`` when there is no active search or the session has
        changed underneath it.
        """
        index = self.search_state.advance()
        if index < 0 or index >= len(self.store.messages):
            return None
        return self.store.messages[index]

    async def send(self, text: str, attachment: Attachment | None = None) -> Message | None:
        """Submit one user turn and return the appended model reply.

        Returns ``None`` when there is nothing to send or a request is already
        in flight.
        """
        if not text.strip() and attachment is None:
            return None
        if self.store.is_busy:
            LOGGER.warning("chat.send.busy", extra={"event": "chat.send.busy"})
            return None

        self.search_state.reset()
        history = self.store.messages
        self.store.append(Message(role=Role.USER, text=text, attachment=attachment))

        request_intent = route(text)
        LOGGER.info(
            "chat.request.start",
            extra={
                "event": "chat.request.start",
                "intent": request_intent.intent.value,
                "history": len(history),
                "attachment": attachment.media_type if attachment else None,
            },
        )
        if request_intent.intent is Intent.GENERATE_IMAGE:
            reply = await self._generate_image(request_intent.prompt)
        else:
            prompt = with_subject_context(text, self.store.active_topic)
            reply = await self._generate_text(
                build_request(
                    self.model,
                    history,
                    prompt,
                    attachment,
                    system_instruction=self.system_instruction,
                    temperature=self.temperature,
                )
            )
        # Lands in whatever session exists now, even after a reset.
        self.store.append(reply)
        return reply

    async def _generate_text(self, request: GenerateRequest) -> Message:
        try:
            response = await self.backend.generate(request)
        except Exception as exc:  # noqa: BLE001 - any backend failure becomes a fallback reply.
            LOGGER.error(
                "chat.request.failed",
                extra={
                    "event": "chat.request.failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return Message(role=Role.MODEL, text=ERROR_RESPONSE_TEXT)
        if not response.text:
            LOGGER.warning("chat.response.empty", extra={"event": "chat.response.empty"})
            return Message(role=Role.MODEL, text=EMPTY_RESPONSE_TEXT)
        return Message(role=Role.MODEL, text=response.text)

    async def _generate_image(self, prompt: str) -> Message:
        request = build_image_request(prompt, self.image_model, self.image_aspect_ratio)
        try:
            response = await self.backend.generate(request)
        except Exception as exc:  # noqa: BLE001 - any backend failure becomes a fallback reply.
            LOGGER.error(
                "chat.image.failed",
                extra={
                    "event": "chat.image.failed",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return Message(role=Role.MODEL, text=ERROR_RESPONSE_TEXT)
        result = parse_image_response(response)
        return Message(
            role=Role.MODEL, text=result.text, generated_image=result.generated_image
        )

    async def summarize(self) -> Message | None:
        """Ask for a recap of the conversation so far."""
        if not self.store.messages:
            return None
        return await self.send(SUMMARY_PROMPT)

    async def extract_text(self, image: str) -> str:
        """Transcribe the text in an image; returns ``""`` on any failure."""
        request = GenerateRequest(
            model=self.model,
            turns=(
                Turn(
                    role=Role.USER,
                    parts=(
                        InlineBinaryPart(media_type="image/jpeg", data=strip_data_url(image)),
                        TextPart(OCR_PROMPT),
                    ),
                ),
            ),
        )
        try:
            response = await self.backend.generate(request)
        except Exception as exc:  # noqa: BLE001 - any backend failure becomes a fallback reply.
            LOGGER.error(
                "chat.ocr.failed",
                extra={"event": "chat.ocr.failed", "error": str(exc)},
            )
            return ""
        return response.text or ""
