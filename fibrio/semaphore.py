"Admission control for suspendable-function definitions"
from __future__ import annotations
from fibrio.exceptions import MisuseError
import collections
import logging
import typing as t

__all__ = [
    'Semaphore',
    'UnlimitedSemaphore',
    'UNLIMITED',
]

logger = logging.getLogger(__name__)

Task = t.Callable[[], None]

class Semaphore:
    """Bounds how many tasks hold a slot at once.

    A task which can't get a slot is queued, and run when a slot frees up; queued
    tasks are admitted strictly in the order they called enter.  The slot is handed
    directly from the leaving task to the next queued one, so the occupied count
    never drops below capacity while anything is queued.

    There's no locking: everything happens on one thread, and none of these methods
    suspend.

    A task which leaves again while we are still admitting it doesn't admit the next
    task from inside itself: the outer leave does, so a long queue of tasks that
    finish immediately is run in a loop rather than by recursion.

    """
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1", capacity)
        self.capacity = capacity
        self.occupied = 0
        self._pending: t.Deque[Task] = collections.deque()
        self._handoffs = 0
        self._handing_off = False

    def __repr__(self) -> str:
        return f"Semaphore({self.occupied}/{self.capacity}, pending={len(self._pending)})"

    @property
    def pending(self) -> int:
        return len(self._pending)

    def enter(self, task: Task) -> None:
        if self.occupied < self.capacity:
            self.occupied += 1
            task()
        else:
            logger.debug("Semaphore.enter(%s): full, queueing behind %d others", task, len(self._pending))
            self._pending.append(task)

    def leave(self) -> None:
        if self.occupied == 0:
            raise MisuseError("left a semaphore with no occupied slots", self)
        if not self._pending:
            self.occupied -= 1
            return
        self._handoffs += 1
        if self._handing_off:
            # a task we admitted has already left again; the loop below admits the next
            return
        self._handing_off = True
        try:
            while self._handoffs and self._pending:
                self._handoffs -= 1
                task = self._pending.popleft()
                logger.debug("Semaphore.leave(): handing slot to %s", task)
                task()
            self.occupied -= self._handoffs
            self._handoffs = 0
        finally:
            self._handing_off = False

class UnlimitedSemaphore(Semaphore):
    "A semaphore which admits everything immediately and never counts."
    def __init__(self) -> None:
        super().__init__(1)

    def __repr__(self) -> str:
        return "UNLIMITED"

    def enter(self, task: Task) -> None:
        task()

    def leave(self) -> None:
        pass

UNLIMITED = UnlimitedSemaphore()
