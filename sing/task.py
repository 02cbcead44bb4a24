"""Running several coroutines together and collecting their failures."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

TaskFunc = Callable[[], Awaitable[None]]


@dataclass
class _TaskItem:
    name: str
    func: TaskFunc


@dataclass
class Group:
    """A set of async callables run concurrently by :meth:`run`."""

    _tasks: list = field(default_factory=list)
    _cleanup: Optional[Callable[[], None]] = None
    _fast_fail: bool = False

    def append(self, name: str, func: TaskFunc) -> None:
        """Add ``func``; its asyncio task is given ``name``."""
        self._tasks.append(_TaskItem(name, func))

    def append0(self, func: TaskFunc) -> None:
        """Add an unnamed ``func``."""
        self._tasks.append(_TaskItem("", func))

    def cleanup(self, func: Callable[[], None]) -> None:
        """Call ``func`` once the tasks finish or the run is cancelled."""
        self._cleanup = func

    def fast_fail(self) -> None:
        """Cancel the remaining tasks as soon as one fails."""
        self._fast_fail = True

    def _run_cleanup(self) -> None:
        if self._cleanup is not None:
            self._cleanup()

    async def run(self) -> None:
        """Run every task to completion and raise the first failure, if any."""
        tasks = [
            asyncio.create_task(item.func(), name=item.name or None)
            for item in self._tasks
        ]
        errors: list = []
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in (t for t in tasks if t in done):
                    if task.cancelled():
                        continue
                    error = task.exception()
                    if error is None:
                        continue
                    errors.append(error)
                    if self._fast_fail:
                        for other in pending:
                            other.cancel()
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            self._run_cleanup()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        self._run_cleanup()
        if errors:
            raise errors[0]


async def run(*tasks: TaskFunc) -> None:
    """Run ``tasks`` concurrently until all finish."""
    group = Group()
    for task in tasks:
        group.append0(task)
    await group.run()


async def run_any(*tasks: TaskFunc) -> None:
    """Run ``tasks`` concurrently, cancelling the rest when one fails."""
    group = Group()
    for task in tasks:
        group.append0(task)
    group.fast_fail()
    await group.run()