"""Console entry point for AcctSolver."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Awaitable, Sequence
from importlib import metadata
import logging
from pathlib import Path
from typing import Any

from .attachments import load_attachment
from .backend import OllamaBackend
from .chat import HomeworkChat
from .config import ensure_config_dir, load_config
from .exceptions import AttachmentError
from .intents import Intent, toggle
from .logging_utils import bind_context, configure_logging
from .models import Attachment, Message
from .persistence import SnapshotStore, export_markdown
from .prompts import (
    CONCEPT_SUGGESTIONS,
    INITIAL_SUGGESTIONS,
    SUBJECTS,
    SYSTEM_INSTRUCTION,
    concept_prompt,
    find_subject,
)
from .session_store import SessionStore

LOGGER = logging.getLogger(__name__)

HELP_TEXT = """\
Commands:
  /subject [name]  show subjects or select one
  /image <text>    generate a chart or diagram
  /exam <text>     concise exam-note answer
  /explain <text>  explain a concept
  /concept <n>     explain one of the suggested concepts
  /attach <path>   attach a file to the next message
  /search <term>   search this session (no term lists everything)
  /next            show the next search match
  /summary         summarize the conversation
  /export <path>   write the transcript as markdown
  /reset           clear the session and its saved copy
  /quit            save and exit"""

INTENT_COMMANDS: dict[str, Intent] = {
    "/image": Intent.GENERATE_IMAGE,
    "/exam": Intent.EXAM_NOTE,
    "/explain": Intent.EXPLAIN_CONCEPT,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acctsolver",
        description="AcctSolver - accounting homework assistant",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    return parser


def _print_message(message: Message) -> None:
    label = "You" if message.role.value == "user" else "Tutor"
    print(f"\n[{label}] {message.text}")
    if message.generated_image:
        print("(image generated; export the session to keep it)")


def build_chat(config: dict[str, Any]) -> HomeworkChat:
    """Wire the session store, backend and chat loop from config."""
    session_cfg = config["session"]
    backend_cfg = config["backend"]
    store = SessionStore(
        SnapshotStore(session_cfg["directory"]) if session_cfg["enabled"] else None,
        storage_key=session_cfg["storage_key"],
        autosave_interval=session_cfg["autosave_interval_seconds"],
        saving_indicator=session_cfg["saving_indicator_seconds"],
    )
    backend = OllamaBackend(
        host=backend_cfg["host"],
        timeout=backend_cfg["timeout"],
        retries=backend_cfg["retries"],
        retry_backoff_seconds=backend_cfg["retry_backoff_seconds"],
    )
    return HomeworkChat(
        backend,
        store,
        model=backend_cfg["model"],
        image_model=backend_cfg["image_model"],
        system_instruction=backend_cfg["system_prompt"] or SYSTEM_INSTRUCTION,
        temperature=backend_cfg["temperature"],
        image_aspect_ratio=backend_cfg["image_aspect_ratio"],
    )


class Console:
    """Line-oriented front end: one call to :meth:`handle` per input line."""

    def __init__(self, chat: HomeworkChat, max_file_bytes: int) -> None:
        self.chat = chat
        self.max_file_bytes = max_file_bytes
        self.pending: Attachment | None = None

    def welcome(self, title: str) -> None:
        print(title)
        for message in self.chat.messages:
            _print_message(message)
        if not self.chat.messages:
            print("Try: " + " | ".join(INITIAL_SUGGESTIONS))
            print("Concepts (/concept <number>):")
            for number, concept in enumerate(CONCEPT_SUGGESTIONS, start=1):
                print(f"  {number}. {concept}")
        print("Type /help for commands.")

    async def handle(self, line: str) -> bool:
        """Process one line; returns False when the user asked to quit."""
        command, _, argument = line.strip().partition(" ")
        argument = argument.strip()
        store = self.chat.store

        if command == "/quit":
            return False
        if command == "/help":
            print(HELP_TEXT)
        elif command == "/subject":
            subject = find_subject(argument) if argument else None
            if subject is None:
                for item in SUBJECTS:
                    print(f"  {item.name} - {item.description}")
            else:
                self.chat.select_subject(subject.name)
                print(f"Subject: {subject.name}")
        elif command == "/attach":
            try:
                self.pending = load_attachment(argument, max_bytes=self.max_file_bytes)
                print(f"Attached {self.pending.name} ({self.pending.media_type})")
            except AttachmentError as exc:
                print(str(exc))
        elif command == "/search":
            matches = self.chat.search(argument)
            for message in matches:
                _print_message(message)
            if self.chat.search_state.has_results():
                print(f"{len(matches)} match(es); /next steps through them.")
        elif command == "/next":
            found = self.chat.next_match()
            if found is None:
                print("No active search results.")
            else:
                state = self.chat.search_state
                print(f"Match {state.position + 1} of {len(state.results)}")
                _print_message(found)
        elif command == "/export":
            try:
                target = export_markdown(store.snapshot(), argument or "session.md")
                print(f"Exported to {target}")
            except OSError as exc:
                print(f"Export failed: {exc}")
        elif command == "/reset":
            store.reset()
            self.pending = None
            print("Session cleared.")
        elif command == "/summary":
            await self._reply(self.chat.summarize())
        elif command == "/concept":
            concept = self._concept(argument)
            if concept is None:
                print(f"Usage: /concept <1-{len(CONCEPT_SUGGESTIONS)}>")
            else:
                await self._send(concept_prompt(concept))
        elif command in INTENT_COMMANDS:
            if not argument:
                print(f"Usage: {command} <text>")
            else:
                await self._send(toggle(argument, INTENT_COMMANDS[command]))
        else:
            await self._send(line)
        return True

    @staticmethod
    def _concept(argument: str) -> str | None:
        if not argument.isdigit():
            return None
        number = int(argument)
        if not 1 <= number <= len(CONCEPT_SUGGESTIONS):
            return None
        return CONCEPT_SUGGESTIONS[number - 1]

    async def _send(self, text: str) -> None:
        attachment, self.pending = self.pending, None
        await self._reply(self.chat.send(text, attachment))

    @staticmethod
    async def _reply(pending_reply: Awaitable[Message | None]) -> None:
        reply = await pending_reply
        if reply is not None:
            _print_message(reply)


async def _run(config: dict[str, Any]) -> None:
    chat = build_chat(config)
    bind_context(model=chat.model, storage_key=chat.store.storage_key)
    store = chat.store
    store.restore()
    store.start_autosave()

    console = Console(chat, config["attachments"]["max_file_bytes"])
    console.welcome(config["app"]["title"])
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "\n> ")
            except EOFError:
                break
            if not await console.handle(line):
                break
    finally:
        await store.stop_autosave()
        store.save_now()


def main(argv: Sequence[str] | None = None) -> None:
    """Handle CLI flags, load configuration and run the console loop."""
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("acctsolver")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"acctsolver {version}")
        return

    ensure_config_dir()
    config = load_config(args.config)
    configure_logging(config["logging"])
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        LOGGER.info("app.interrupted", extra={"event": "app.interrupted"})


if __name__ == "__main__":
    main()
