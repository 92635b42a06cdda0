"""Inference backend boundary and the Ollama-backed implementation."""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass, field
import logging
from typing import Any, Protocol

import httpx
from ollama import AsyncClient

from .attachments import is_image
from .exceptions import (
    AcctSolverError,
    BackendConnectionError,
    BackendModelNotFoundError,
    BackendRequestError,
)
from .models import ContentPart, InlineBinaryPart, Role, TextPart, Turn

LOGGER = logging.getLogger(__name__)

RESPONSE_IMAGE_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class GenerateConfig:
    """Optional generation settings forwarded to the backend."""

    temperature: float | None = None
    aspect_ratio: str | None = None


@dataclass(frozen=True)
class GenerateRequest:
    model: str
    turns: tuple[Turn, ...]
    system_instruction: str | None = None
    config: GenerateConfig = field(default_factory=GenerateConfig)


@dataclass(frozen=True)
class GenerateResponse:
    """Backend reply: optional aggregate text plus ordered content parts."""

    text: str | None = None
    parts: tuple[ContentPart, ...] = ()


class InferenceBackend(Protocol):
    """Anything that can answer a :class:`GenerateRequest`."""

    async def generate(self, request: GenerateRequest) -> GenerateResponse: ...


class OllamaBackend:
    """Send assembled turns to an Ollama host with retries."""

    def __init__(
        self,
        host: str,
        timeout: int = 120,
        retries: int = 2,
        retry_backoff_seconds: float = 0.5,
        client: Any | None = None,
    ) -> None:
        self.host = host
        self.timeout = timeout
        self.retries = retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._client = client if client is not None else AsyncClient(host=host, timeout=timeout)

    @staticmethod
    def _to_message(turn: Turn) -> dict[str, Any]:
        texts: list[str] = []
        images: list[str] = []
        for part in turn.parts:
            if isinstance(part, TextPart):
                if part.text:
                    texts.append(part.text)
            elif is_image(part.media_type):
                images.append(part.data)
            else:
                LOGGER.warning(
                    "backend.part.unsupported",
                    extra={
                        "event": "backend.part.unsupported",
                        "media_type": part.media_type,
                    },
                )
        message: dict[str, Any] = {
            "role": "assistant" if turn.role is Role.MODEL else "user",
            "content": "\n\n".join(texts),
        }
        if images:
            message["images"] = images
        return message

    def _build_kwargs(self, request: GenerateRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        messages.extend(self._to_message(turn) for turn in request.turns)

        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "stream": False,
        }
        if request.config.temperature is not None:
            kwargs["options"] = {"temperature": request.config.temperature}
        if request.config.aspect_ratio:
            # Ollama chat has no aspect-ratio control; the hint is only logged.
            LOGGER.debug(
                "backend.aspect_ratio.ignored",
                extra={
                    "event": "backend.aspect_ratio.ignored",
                    "aspect_ratio": request.config.aspect_ratio,
                },
            )
        return kwargs

    @staticmethod
    def _extract_message_field(response: Any, name: str) -> Any:
        """Read ``message.<name>`` from an SDK object or a plain dict."""
        message_obj = getattr(response, "message", None)
        if message_obj is not None and not isinstance(response, dict):
            return getattr(message_obj, name, None)
        if isinstance(response, dict):
            message = response.get("message")
            if isinstance(message, dict):
                return message.get(name)
        return None

    @staticmethod
    def _image_payload(image: Any) -> str:
        value = getattr(image, "value", image)
        if isinstance(value, bytes):
            return base64.b64encode(value).decode("ascii")
        return str(value)

    @classmethod
    def _parse_response(cls, response: Any) -> GenerateResponse:
        parts: list[ContentPart] = []
        images = cls._extract_message_field(response, "images")
        if isinstance(images, list | tuple):
            for image in images:
                payload = cls._image_payload(image)
                if payload:
                    parts.append(
                        InlineBinaryPart(media_type=RESPONSE_IMAGE_MEDIA_TYPE, data=payload)
                    )
        content = cls._extract_message_field(response, "content")
        text = content if isinstance(content, str) and content else None
        if text:
            parts.append(TextPart(text))
        return GenerateResponse(text=text, parts=tuple(parts))

    def _map_exception(self, exc: Exception, model: str) -> AcctSolverError:
        if isinstance(exc, AcctSolverError):
            return exc

        if isinstance(
            exc,
            (
                httpx.ConnectError,
                httpx.ConnectTimeout,
                httpx.ReadTimeout,
                httpx.NetworkError,
            ),
        ):
            return BackendConnectionError(f"Unable to connect to backend host {self.host}.")

        lower_message = str(exc).lower()
        if "model" in lower_message and ("not found" in lower_message or "404" in lower_message):
            return BackendModelNotFoundError(f"Model {model!r} was not found on {self.host}.")

        return BackendRequestError(f"Backend request to {self.host} failed: {exc}")

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        kwargs = self._build_kwargs(request)
        for attempt in range(self.retries + 1):
            try:
                response = await self._client.chat(**kwargs)
                return self._parse_response(response)
            except asyncio.CancelledError:
                LOGGER.info(
                    "backend.request.cancelled",
                    extra={"event": "backend.request.cancelled"},
                )
                raise
            except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
                mapped_exc = self._map_exception(exc, request.model)
                LOGGER.warning(
                    "backend.request.retry",
                    extra={
                        "event": "backend.request.retry",
                        "attempt": attempt + 1,
                        "error_type": mapped_exc.__class__.__name__,
                    },
                )
                if attempt >= self.retries or isinstance(mapped_exc, BackendModelNotFoundError):
                    raise mapped_exc from exc
                await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
        raise BackendRequestError("Backend request was not attempted.")
