"""Durable key-value snapshot storage and transcript export."""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
from typing import Any

from .exceptions import PersistenceError, PersistenceFormatError
from .models import Session

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class SnapshotStore:
    """Store one JSON record per key inside a private directory.

    Writes replace the previous record wholesale through a temporary file.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.directory, 0o700)

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise PersistenceError(f"Invalid storage key {key!r}.")
        return self.directory / f"{key}.json"

    def write(self, key: str, payload: dict[str, Any]) -> Path:
        """Replace the record stored under ``key``.

        Any failure, including unserialisable or unencodable content, raises
        :class:`PersistenceError` and leaves no staging file behind.
        """
        target = self.path_for(key)
        staging = target.with_suffix(".json.tmp")
        try:
            self._ensure_directory()
            staging.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
            self._enforce_permissions(staging)
            os.replace(staging, target)
        except (OSError, TypeError, ValueError) as exc:
            try:
                staging.unlink(missing_ok=True)
            except OSError:
                pass
            raise PersistenceError(f"Unable to write {target}: {exc}") from exc
        return target

    def read(self, key: str) -> dict[str, Any] | None:
        """Return the record under ``key`` or ``None`` when absent."""
        target = self.path_for(key)
        if not target.exists():
            return None
        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise PersistenceFormatError(f"Snapshot {target} is not valid JSON.") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read {target}: {exc}") from exc
        if not isinstance(payload, dict):
            raise PersistenceFormatError("Snapshot payload is invalid.")
        return payload

    def delete(self, key: str) -> None:
        target = self.path_for(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Unable to delete {target}: {exc}") from exc


def export_markdown(session: Session, target: str | Path) -> Path:
    """Write the session transcript to a markdown file."""
    path = Path(target).expanduser()
    title = session.active_topic or "General"
    lines = [f"# Homework Session ({title})", ""]
    for message in session.messages:
        role = "Student" if message.role.value == "user" else "Tutor"
        lines.append(f"## {role} - {message.created_at:%Y-%m-%d %H:%M}")
        lines.append("")
        if message.attachment is not None:
            lines.append(f"_Attached: {message.attachment.name}_")
            lines.append("")
        if message.generated_image:
            lines.append("_Generated image attached._")
            lines.append("")
        lines.append(message.text.strip())
        lines.append("")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines).strip() + "\n", encoding="utf-8")
    return path
