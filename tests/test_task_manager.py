"""Tests for the TaskManager lifecycle helper."""

from __future__ import annotations

import asyncio
import unittest

from acctsolver.task_manager import TaskManager


async def _sleeper(log: list[str], label: str) -> None:
    try:
        await asyncio.sleep(9999)
    except asyncio.CancelledError:
        log.append(label)
        raise


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named task lifecycle management."""

    async def test_spawn_and_cancel_by_name(self) -> None:
        tm = TaskManager()
        log: list[str] = []
        task = tm.spawn("session.autosave", _sleeper(log, "autosave"))
        await asyncio.sleep(0)
        self.assertIs(tm.get("session.autosave"), task)
        self.assertEqual(task.get_name(), "session.autosave")
        self.assertTrue(tm.is_running("session.autosave"))

        await tm.cancel("session.autosave")
        self.assertTrue(task.done())
        self.assertEqual(log, ["autosave"])
        self.assertIsNone(tm.get("session.autosave"))
        self.assertFalse(tm.is_running("session.autosave"))

    async def test_spawn_refuses_duplicate_running_name(self) -> None:
        tm = TaskManager()
        log: list[str] = []
        tm.spawn("job", _sleeper(log, "first"))
        await asyncio.sleep(0)
        with self.assertRaises(ValueError):
            tm.spawn("job", _sleeper(log, "second"))
        await tm.cancel_all()
        self.assertEqual(log, ["first"])

    async def test_finished_task_can_be_replaced(self) -> None:
        tm = TaskManager()

        async def _quick() -> str:
            return "done"

        first = tm.spawn("job", _quick())
        self.assertEqual(await first, "done")
        second = tm.spawn("job", _quick())
        self.assertIsNot(first, second)
        await second

    async def test_cancel_unknown_name_is_noop(self) -> None:
        await TaskManager().cancel("missing")

    async def test_task_failure_is_logged(self) -> None:
        tm = TaskManager()

        async def _boom() -> None:
            raise ValueError("bad")

        with self.assertLogs("acctsolver.task_manager", level="WARNING") as captured:
            task = tm.spawn("boom", _boom())
            with self.assertRaises(ValueError):
                await task
            await asyncio.sleep(0)
        self.assertTrue(any("task.failed" in line for line in captured.output))

    async def test_cancel_all_stops_every_task(self) -> None:
        tm = TaskManager()
        log: list[str] = []
        tm.spawn("a", _sleeper(log, "a"))
        tm.spawn("b", _sleeper(log, "b"))
        await asyncio.sleep(0)
        await tm.cancel_all()
        self.assertCountEqual(log, ["a", "b"])
        self.assertIsNone(tm.get("a"))


if __name__ == "__main__":
    unittest.main()
