"""End-to-end tests for the conversation loop with a fake backend."""

from __future__ import annotations

import asyncio
import base64
import unittest

from acctsolver.backend import GenerateRequest, GenerateResponse
from acctsolver.chat import HomeworkChat
from acctsolver.exceptions import BackendConnectionError
from acctsolver.models import Attachment, InlineBinaryPart, Message, Role, TextPart
from acctsolver.prompts import (
    EMPTY_RESPONSE_TEXT,
    ERROR_RESPONSE_TEXT,
    OCR_PROMPT,
    SUMMARY_PROMPT,
)
from acctsolver.session_store import SessionStore


class FakeBackend:
    """Record requests and answer from a scripted list."""

    def __init__(self, *replies: GenerateResponse | Exception) -> None:
        self.replies = list(replies)
        self.requests: list[GenerateRequest] = []

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else GenerateResponse(text="ok")
        if isinstance(reply, Exception):
            raise reply
        return reply


def _chat(backend: FakeBackend, store: SessionStore | None = None) -> HomeworkChat:
    return HomeworkChat(
        backend,
        store or SessionStore(),
        model="tutor",
        image_model="painter",
        system_instruction="Be a tutor.",
    )


class HomeworkChatSendTests(unittest.IsolatedAsyncioTestCase):
    """Validate the send flow and fallback replies."""

    async def test_standard_send_appends_both_messages(self) -> None:
        backend = FakeBackend(GenerateResponse(text="Debit cash."))
        chat = _chat(backend)
        reply = await chat.send("Journal entry for capital?")

        assert reply is not None
        self.assertEqual(reply.role, Role.MODEL)
        self.assertEqual(reply.text, "Debit cash.")
        self.assertEqual([m.role for m in chat.messages], [Role.USER, Role.MODEL])
        self.assertFalse(chat.store.is_busy)
        request = backend.requests[0]
        self.assertEqual(request.model, "tutor")
        self.assertEqual(request.system_instruction, "Be a tutor.")
        self.assertEqual(request.config.temperature, 0.3)
        self.assertEqual(len(request.turns), 1)

    async def test_history_excludes_the_new_user_message(self) -> None:
        backend = FakeBackend(GenerateResponse(text="one"), GenerateResponse(text="two"))
        chat = _chat(backend)
        await chat.send("first")
        await chat.send("second")
        turns = backend.requests[1].turns
        self.assertEqual(len(turns), 3)
        self.assertEqual(turns[0].parts[-1], TextPart("first"))
        self.assertEqual(turns[1].parts[-1], TextPart("one"))
        self.assertEqual(turns[2].parts[-1], TextPart("second"))

    async def test_busy_flag_is_set_while_waiting(self) -> None:
        gate = asyncio.Event()
        observed: list[bool] = []

        class SlowBackend(FakeBackend):
            async def generate(self, request: GenerateRequest) -> GenerateResponse:
                observed.append(chat.store.is_busy)
                await gate.wait()
                return GenerateResponse(text="done")

        chat = _chat(SlowBackend())
        task = asyncio.create_task(chat.send("slow question"))
        await asyncio.sleep(0)
        self.assertIsNone(await chat.send("second question"))
        gate.set()
        await task
        self.assertEqual(observed, [True])
        self.assertFalse(chat.store.is_busy)
        self.assertEqual(len(chat.messages), 2)

    async def test_subject_context_is_prefixed(self) -> None:
        backend = FakeBackend()
        chat = _chat(backend)
        chat.select_subject("Taxation")
        await chat.send("What is withholding tax?")
        self.assertEqual(
            backend.requests[0].turns[-1].parts[-1],
            TextPart("[Subject: Taxation] What is withholding tax?"),
        )
        self.assertEqual(chat.messages[0].text, "What is withholding tax?")

    async def test_backend_failure_appends_apology(self) -> None:
        chat = _chat(FakeBackend(BackendConnectionError("offline")))
        reply = await chat.send("hello")
        assert reply is not None
        self.assertEqual(reply.text, ERROR_RESPONSE_TEXT)
        self.assertFalse(chat.store.is_busy)
        self.assertEqual(len(chat.messages), 2)

    async def test_unexpected_failure_appends_apology(self) -> None:
        chat = _chat(FakeBackend(RuntimeError("kaput")))
        reply = await chat.send("hello")
        assert reply is not None
        self.assertEqual(reply.text, ERROR_RESPONSE_TEXT)

    async def test_empty_response_has_distinct_message(self) -> None:
        chat = _chat(FakeBackend(GenerateResponse(text=None)))
        reply = await chat.send("hello")
        assert reply is not None
        self.assertEqual(reply.text, EMPTY_RESPONSE_TEXT)
        self.assertNotEqual(EMPTY_RESPONSE_TEXT, ERROR_RESPONSE_TEXT)

    async def test_blank_input_without_attachment_is_ignored(self) -> None:
        backend = FakeBackend()
        chat = _chat(backend)
        self.assertIsNone(await chat.send("   "))
        self.assertEqual(backend.requests, [])
        self.assertEqual(chat.messages, ())

    async def test_attachment_only_turn_is_sent(self) -> None:
        backend = FakeBackend()
        chat = _chat(backend)
        data = base64.b64encode(b"a,b\n1,2").decode("ascii")
        attachment = Attachment(data=f"data:text/csv;base64,{data}", media_type="text/csv", name="d.csv")
        await chat.send("", attachment)
        parts = backend.requests[0].turns[-1].parts
        self.assertEqual(parts[0], TextPart("[Attached File: d.csv]\na,b\n1,2\n[End of File]"))
        self.assertEqual(parts[1], TextPart(""))
        self.assertIs(chat.messages[0].attachment, attachment)

    async def test_send_clears_search_state(self) -> None:
        chat = _chat(FakeBackend())
        chat.store.append(Message(role=Role.MODEL, text="Depreciation basics"))
        chat.search("depreciation")
        self.assertTrue(chat.search_state.has_results())
        await chat.send("next")
        self.assertFalse(chat.search_state.has_results())


class HomeworkChatImageTests(unittest.IsolatedAsyncioTestCase):
    """Validate the image-generation path."""

    async def test_generate_image_end_to_end(self) -> None:
        backend = FakeBackend(
            GenerateResponse(parts=(InlineBinaryPart("image/png", "CHART"),))
        )
        chat = _chat(backend)
        chat.store.append(Message(role=Role.USER, text="earlier"))
        chat.store.append(Message(role=Role.MODEL, text="reply"))
        chat.select_subject("Cost Accounting")

        reply = await chat.send("Generate Image: pie chart of expenses")

        assert reply is not None
        self.assertEqual(reply.text, "Here is the visual representation you requested.")
        self.assertEqual(reply.generated_image, "data:image/png;base64,CHART")
        request = backend.requests[0]
        self.assertEqual(request.model, "painter")
        self.assertEqual(len(request.turns), 1)
        self.assertEqual(request.turns[0].parts, (TextPart("pie chart of expenses"),))
        self.assertEqual(request.config.aspect_ratio, "4:3")
        self.assertIsNone(request.system_instruction)

    async def test_image_failure_appends_apology(self) -> None:
        chat = _chat(FakeBackend(RuntimeError("no gpu")))
        reply = await chat.send("Generate Image: bar chart")
        assert reply is not None
        self.assertEqual(reply.text, ERROR_RESPONSE_TEXT)
        self.assertIsNone(reply.generated_image)


class HomeworkChatHelpersTests(unittest.IsolatedAsyncioTestCase):
    """Validate summary, OCR and search helpers."""

    async def test_summarize_noop_when_empty(self) -> None:
        backend = FakeBackend()
        chat = _chat(backend)
        self.assertIsNone(await chat.summarize())
        self.assertEqual(backend.requests, [])

    async def test_summarize_sends_summary_prompt(self) -> None:
        backend = FakeBackend(GenerateResponse(text="a"), GenerateResponse(text="summary"))
        chat = _chat(backend)
        await chat.send("What is goodwill?")
        reply = await chat.summarize()
        assert reply is not None
        self.assertEqual(reply.text, "summary")
        self.assertEqual(chat.messages[2].text, SUMMARY_PROMPT)

    async def test_extract_text(self) -> None:
        backend = FakeBackend(GenerateResponse(text="Cash 500"))
        chat = _chat(backend)
        text = await chat.extract_text("data:image/jpeg;base64,SCAN")
        self.assertEqual(text, "Cash 500")
        parts = backend.requests[0].turns[0].parts
        self.assertEqual(parts, (InlineBinaryPart("image/jpeg", "SCAN"), TextPart(OCR_PROMPT)))
        self.assertEqual(chat.messages, ())

    async def test_extract_text_failure_returns_empty(self) -> None:
        chat = _chat(FakeBackend(RuntimeError("down")))
        self.assertEqual(await chat.extract_text("SCAN"), "")

    async def test_next_match_wraps_through_search_hits(self) -> None:
        chat = _chat(FakeBackend())
        chat.store.append(Message(role=Role.USER, text="Depreciation methods"))
        chat.store.append(Message(role=Role.MODEL, text="Straight line"))
        chat.store.append(Message(role=Role.USER, text="More on depreciation"))
        self.assertIsNone(chat.next_match())
        chat.search("depreciation")
        texts = [chat.next_match().text for _ in range(3)]  # type: ignore[union-attr]
        self.assertEqual(
            texts, ["Depreciation methods", "More on depreciation", "Depreciation methods"]
        )

    async def test_search_does_not_touch_session(self) -> None:
        chat = _chat(FakeBackend())
        chat.store.append(Message(role=Role.USER, text="Explain Depreciation"))
        chat.store.append(Message(role=Role.MODEL, text="Sure"))
        before = chat.store.snapshot()
        self.assertEqual(len(chat.search("depreciation")), 1)
        self.assertIs(chat.search(""), chat.messages)
        self.assertIs(chat.store.snapshot(), before)


if __name__ == "__main__":
    unittest.main()
