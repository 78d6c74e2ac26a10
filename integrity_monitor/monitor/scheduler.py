"""
Task Scheduler - Periodic tasks owned by a monitoring session

A session schedules its clock tick and presence poll through a scheduler
and cancels them on stop. Two implementations:
- AsyncioScheduler: real time, one asyncio task per periodic callback
- ManualScheduler: deterministic, time advanced explicitly by the caller
"""

import asyncio
import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle to a periodic callback"""

    def __init__(self, name: str, interval: float, callback: Callable[[], None], blocking: bool = False):
        if interval <= 0:
            raise ValueError(f"Interval for {name} must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.blocking = blocking
        self.running = True
        self.runs = 0

    def fire(self):
        """Invoke the callback once; failures are logged and the task keeps going"""
        if not self.running:
            return
        self.runs += 1
        try:
            self.callback()
        except Exception as e:
            logger.exception(f"Periodic task {self.name} failed: {e}")

    def cancel(self):
        self.running = False


class TaskScheduler:
    """
    Interface: schedule periodic callbacks and cancel them all at once.

    `blocking` marks callbacks that do I/O or heavy CPU work (frame reads,
    cascade detection); schedulers with an event loop run them off the loop.
    """

    def schedule(
        self,
        name: str,
        interval: float,
        callback: Callable[[], None],
        blocking: bool = False
    ) -> ScheduledTask:
        raise NotImplementedError

    def cancel_all(self):
        raise NotImplementedError

    @property
    def active_tasks(self) -> List[ScheduledTask]:
        raise NotImplementedError


class AsyncioScheduler(TaskScheduler):
    """
    Runs each periodic callback as an asyncio task on the running loop.

    Must be used from inside a running event loop (e.g. a FastAPI
    endpoint). Plain callbacks run on the loop; blocking ones run in the
    default executor, so they must take the session lock themselves.
    """

    def __init__(self):
        self._tasks: List[ScheduledTask] = []
        self._handles: List[asyncio.Task] = []

    def schedule(
        self,
        name: str,
        interval: float,
        callback: Callable[[], None],
        blocking: bool = False
    ) -> ScheduledTask:
        loop = asyncio.get_running_loop()
        task = ScheduledTask(name, interval, callback, blocking)
        handle = loop.create_task(self._run(task), name=f"monitor-{name}")
        self._tasks.append(task)
        self._handles.append(handle)
        logger.debug(f"Scheduled {name} every {interval}s")
        return task

    async def _run(self, task: ScheduledTask):
        while task.running:
            await asyncio.sleep(task.interval)
            # Cancelled while sleeping: no lingering run
            if not task.running:
                break
            if task.blocking:
                await asyncio.get_running_loop().run_in_executor(None, task.fire)
            else:
                task.fire()

    def cancel_all(self):
        for task in self._tasks:
            task.cancel()
        for handle in self._handles:
            handle.cancel()
        self._tasks = []
        self._handles = []

    @property
    def active_tasks(self) -> List[ScheduledTask]:
        return [t for t in self._tasks if t.running]


class ManualScheduler(TaskScheduler):
    """
    Deterministic scheduler driven by advance().

    Tasks due at the same instant fire in the order they were scheduled,
    so a clock scheduled before a poller has already ticked when the
    poller runs.
    """

    def __init__(self):
        self.now = 0.0
        self._entries: List[list] = []  # [next_due, order, task]
        self._order = 0

    def schedule(
        self,
        name: str,
        interval: float,
        callback: Callable[[], None],
        blocking: bool = False
    ) -> ScheduledTask:
        # Blocking callbacks still fire inline: advance() is the only clock
        task = ScheduledTask(name, interval, callback, blocking)
        self._entries.append([self.now + interval, self._order, task])
        self._order += 1
        return task

    def advance(self, seconds: float):
        """Move time forward, firing every task that comes due"""
        if seconds < 0:
            raise ValueError("Cannot move time backwards")

        target = self.now + seconds
        while True:
            due = self._next_due(target)
            if due is None:
                break
            entry = due
            self.now = entry[0]
            entry[0] += entry[2].interval
            entry[2].fire()
        self.now = target

    def _next_due(self, target: float) -> Optional[list]:
        live = [e for e in self._entries if e[2].running and e[0] <= target]
        if not live:
            return None
        return min(live, key=lambda e: (e[0], e[1]))

    def cancel_all(self):
        for entry in self._entries:
            entry[2].cancel()
        self._entries = []

    @property
    def active_tasks(self) -> List[ScheduledTask]:
        return [e[2] for e in self._entries if e[2].running]
