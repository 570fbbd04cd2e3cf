from collections import deque
from typing import Deque, List

from .event_log import EventLog
from .models import EventKind, SubjectKind, Task


class WaitingQueue:
    """FIFO line of tasks not yet dispatched to a server.

    Enqueue times grow with insertion order, so a plain deque keeps the
    line sorted without any reordering.
    """

    def __init__(self, log: EventLog):
        self._log = log
        self._tasks: Deque[Task] = deque()

    def enqueue(self, task: Task, clock: float) -> None:
        task.enqueue_time = clock
        self._tasks.append(task)
        self._log.append(SubjectKind.QUEUE, task.id, EventKind.ENQUEUE, clock)

    def dequeue_oldest(self, clock: float) -> Task:
        if not self._tasks:
            raise IndexError("dequeue from an empty waiting queue")
        task = self._tasks.popleft()
        self._log.append(SubjectKind.QUEUE, task.id, EventKind.DEQUEUE, clock)
        return task

    def size(self) -> int:
        return len(self._tasks)

    def snapshot(self) -> List[Task]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)
