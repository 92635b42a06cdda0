"""Single owner of the conversation session, with durable autosave."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace
import logging
import time

from .exceptions import DuplicateMessageError, PersistenceError
from .models import Message, Role, Session
from .persistence import SnapshotStore
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "acctsolver_chat_state"
AUTOSAVE_TASK_NAME = "session.autosave"

SessionListener = Callable[[Session], None]


@dataclass(frozen=True)
class AppendMessage:
    message: Message


@dataclass(frozen=True)
class ResetSession:
    pass


@dataclass(frozen=True)
class ClearConversation:
    pass


@dataclass(frozen=True)
class SetTopic:
    name: str | None


@dataclass(frozen=True)
class SetBusy:
    busy: bool


Mutation = AppendMessage | ResetSession | ClearConversation | SetTopic | SetBusy


def _transition(session: Session, mutation: Mutation) -> Session:
    if isinstance(mutation, AppendMessage):
        message = mutation.message
        if any(existing.id == message.id for existing in session.messages):
            raise DuplicateMessageError(f"Message id {message.id!r} already exists.")
        return Session(
            messages=session.messages + (message,),
            active_topic=session.active_topic,
            is_busy=message.role is Role.USER,
        )
    if isinstance(mutation, ResetSession):
        return Session()
    if isinstance(mutation, ClearConversation):
        return replace(session, messages=(), active_topic=None)
    if isinstance(mutation, SetTopic):
        return replace(session, active_topic=mutation.name or None)
    if isinstance(mutation, SetBusy):
        return replace(session, is_busy=mutation.busy)
    raise TypeError(f"Unsupported session mutation: {mutation!r}")


class SessionStore:
    """Own the canonical session and persist it on a fixed interval.

    All mutations go through :meth:`apply` and run synchronously on the event
    loop thread. Storage failures are logged and never raised to callers.
    """

    def __init__(
        self,
        snapshot_store: SnapshotStore | None = None,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        autosave_interval: float = 30.0,
        saving_indicator: float = 2.0,
        task_manager: TaskManager | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.snapshot_store = snapshot_store
        self.storage_key = storage_key
        self.autosave_interval = autosave_interval
        self.saving_indicator = saving_indicator
        self.tasks = task_manager or TaskManager()
        self._clock = clock
        self._session = Session()
        self._saving_until = 0.0
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._session.messages

    @property
    def active_topic(self) -> str | None:
        return self._session.active_topic

    @property
    def is_busy(self) -> bool:
        return self._session.is_busy

    @property
    def is_saving(self) -> bool:
        """True for a short window after each successful durable write."""
        return self._clock() < self._saving_until

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, mutation: Mutation) -> Session:
        """Apply one mutation, notify listeners and return the new session."""
        self._session = _transition(self._session, mutation)
        for listener in list(self._listeners):
            try:
                listener(self._session)
            except Exception as exc:  # noqa: BLE001 - a UI hook must not break state.
                LOGGER.warning(
                    "session.listener.failed",
                    extra={"event": "session.listener.failed", "error": str(exc)},
                )
        return self._session

    def append(self, message: Message) -> Session:
        return self.apply(AppendMessage(message))

    def set_topic(self, name: str | None) -> Session:
        return self.apply(SetTopic(name))

    def set_busy(self, busy: bool) -> Session:
        return self.apply(SetBusy(busy))

    def clear_conversation(self) -> Session:
        """Drop messages and topic in memory; the durable snapshot is kept."""
        return self.apply(ClearConversation())

    def reset(self) -> Session:
        """Start over with an empty session and delete the durable snapshot now."""
        session = self.apply(ResetSession())
        if self.snapshot_store is not None:
            try:
                self.snapshot_store.delete(self.storage_key)
            except PersistenceError as exc:
                LOGGER.error(
                    "session.clear_failed",
                    extra={"event": "session.clear_failed", "error": str(exc)},
                )
        LOGGER.info("session.reset", extra={"event": "session.reset"})
        return session

    def snapshot(self) -> Session:
        """Immutable copy of the full session."""
        return self._session

    def restore(self) -> Session:
        """Load the durable snapshot, falling back to an empty session."""
        restored = Session()
        if self.snapshot_store is not None:
            try:
                payload = self.snapshot_store.read(self.storage_key)
                if payload is not None:
                    # A request from a previous run can never still be in flight.
                    restored = replace(Session.from_dict(payload), is_busy=False)
            except (PersistenceError, ValueError, TypeError) as exc:
                LOGGER.error(
                    "session.restore_failed",
                    extra={"event": "session.restore_failed", "error": str(exc)},
                )
                restored = Session()
        self._session = restored
        LOGGER.info(
            "session.restored",
            extra={"event": "session.restored", "messages": len(restored.messages)},
        )
        return restored

    def save_now(self) -> bool:
        """Write the current session if it has messages. Returns True on write."""
        if self.snapshot_store is None or not self._session.messages:
            return False
        session = self.snapshot()
        try:
            self.snapshot_store.write(self.storage_key, session.to_dict())
        except PersistenceError as exc:
            LOGGER.error(
                "session.save_failed",
                extra={"event": "session.save_failed", "error": str(exc)},
            )
            return False
        self._saving_until = self._clock() + self.saving_indicator
        LOGGER.debug(
            "session.saved",
            extra={"event": "session.saved", "messages": len(session.messages)},
        )
        return True

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(self.autosave_interval)
            self.save_now()

    def start_autosave(self) -> None:
        """Start the periodic autosave task on the running event loop."""
        if self.tasks.is_running(AUTOSAVE_TASK_NAME):
            return
        self.tasks.spawn(AUTOSAVE_TASK_NAME, self._autosave_loop())

    async def stop_autosave(self) -> None:
        await self.tasks.cancel(AUTOSAVE_TASK_NAME)
