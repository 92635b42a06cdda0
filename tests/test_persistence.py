"""Tests for the durable snapshot store and transcript export."""

from __future__ import annotations

import json
from pathlib import Path
import tempfile
import unittest

from acctsolver.exceptions import PersistenceError, PersistenceFormatError
from acctsolver.models import Attachment, Message, Role, Session
from acctsolver.persistence import SnapshotStore, export_markdown


class SnapshotStoreTests(unittest.TestCase):
    """Validate write, read, replace and delete behavior."""

    def test_write_then_read(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(Path(temp_dir) / "sessions")
            store.write("state", {"messages": [], "isBusy": False})
            self.assertEqual(store.read("state"), {"messages": [], "isBusy": False})

    def test_write_replaces_previous_record(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(temp_dir)
            store.write("state", {"a": 1, "b": 2})
            store.write("state", {"c": 3})
            self.assertEqual(store.read("state"), {"c": 3})
            self.assertEqual(list(Path(temp_dir).glob("*.tmp")), [])

    def test_read_missing_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertIsNone(SnapshotStore(temp_dir).read("state"))

    def test_read_corrupted_raises_format_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(temp_dir)
            store.path_for("state").write_text("not json{{", encoding="utf-8")
            with self.assertRaises(PersistenceFormatError):
                store.read("state")

    def test_read_non_object_raises_format_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(temp_dir)
            store.path_for("state").write_text(json.dumps([1, 2]), encoding="utf-8")
            with self.assertRaises(PersistenceFormatError):
                store.read("state")

    def test_delete_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(temp_dir)
            store.write("state", {})
            store.delete("state")
            store.delete("state")
            self.assertIsNone(store.read("state"))

    def test_unencodable_text_raises_persistence_error_and_cleans_up(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(temp_dir)
            with self.assertRaises(PersistenceError):
                store.write("state", {"text": "bad \ud800"})
            self.assertEqual(list(Path(temp_dir).iterdir()), [])

    def test_unserialisable_payload_raises_persistence_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SnapshotStore(temp_dir)
            with self.assertRaises(PersistenceError):
                store.write("state", {"when": object()})
            self.assertIsNone(store.read("state"))

    def test_invalid_key_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(PersistenceError):
                SnapshotStore(temp_dir).path_for("../escape")


class ExportMarkdownTests(unittest.TestCase):
    def test_export_markdown(self) -> None:
        session = Session(
            messages=(
                Message(
                    role=Role.USER,
                    text="Question",
                    attachment=Attachment(data="", media_type="application/pdf", name="b.pdf"),
                ),
                Message(role=Role.MODEL, text="Answer"),
            ),
            active_topic="Auditing",
        )
        with tempfile.TemporaryDirectory() as temp_dir:
            output = export_markdown(session, Path(temp_dir) / "out" / "session.md")
            content = output.read_text(encoding="utf-8")
        self.assertIn("# Homework Session (Auditing)", content)
        self.assertIn("## Student", content)
        self.assertIn("## Tutor", content)
        self.assertIn("_Attached: b.pdf_", content)
        self.assertIn("Answer", content)


if __name__ == "__main__":
    unittest.main()
