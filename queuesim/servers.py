from dataclasses import replace
from typing import Iterator, List, Optional

from .event_log import EventLog
from .models import EventKind, Server, ServerState, SubjectKind, Task


class ServerPool:
    """
    Fixed array of N server records, indexed by id - 1.

    Selection is a linear pass over the array:
      - pick_idlest: Idle server with the largest idle_accum, lowest id on ties
      - pick_soonest_release: Busy server with the smallest release_time, lowest id on ties
    """

    def __init__(self, nserv: int, log: EventLog):
        self._log = log
        self._servers: List[Server] = [Server(id=i) for i in range(1, nserv + 1)]

    def __len__(self) -> int:
        return len(self._servers)

    def __iter__(self) -> Iterator[Server]:
        return iter(self._servers)

    def server(self, server_id: int) -> Server:
        return self._servers[server_id - 1]

    def idle_count(self) -> int:
        return sum(1 for s in self._servers if s.state is ServerState.IDLE)

    def busy_count(self) -> int:
        return sum(1 for s in self._servers if s.state is ServerState.BUSY)

    def snapshot(self) -> List[Server]:
        return [replace(s) for s in self._servers]

    def pick_idlest(self) -> Optional[Server]:
        best = None
        for s in self._servers:
            # strict comparison keeps the lowest id on ties
            if s.state is ServerState.IDLE and (best is None or s.idle_accum > best.idle_accum):
                best = s
        return best

    def pick_soonest_release(self) -> Optional[Server]:
        best = None
        for s in self._servers:
            if s.state is ServerState.BUSY and (best is None or s.release_time < best.release_time):
                best = s
        return best

    def engage(self, server: Server, task: Task, clock: float) -> None:
        if server.state is not ServerState.IDLE:
            raise RuntimeError(f"server {server.id} is busy with task {server.current_task_id}")

        server.state = ServerState.BUSY
        server.idle_accum = None
        server.release_time = clock + task.service_duration
        server.current_task = task

        task.start_time = clock
        task.server_id = server.id

        self._log.append(SubjectKind.SERVER, server.id, EventKind.ENGAGE, clock, task.id)
        self._log.append(SubjectKind.TASK, task.id, EventKind.START, clock, server.id)

    def release(self, server: Server, clock: float) -> Task:
        if server.state is not ServerState.BUSY:
            raise RuntimeError(f"server {server.id} is not busy")
        if server.release_time != clock:
            raise RuntimeError(
                f"server {server.id} is due at {server.release_time}, not {clock}"
            )

        task = server.current_task
        task.end_time = clock

        server.state = ServerState.IDLE
        server.idle_accum = 0.0
        server.release_time = None
        server.current_task = None

        self._log.append(SubjectKind.SERVER, server.id, EventKind.RELEASE, clock, task.id)
        self._log.append(SubjectKind.TASK, task.id, EventKind.END, clock, server.id)
        return task

    def advance_idle(self, jump: float) -> None:
        # covers servers released earlier in the same step
        for s in self._servers:
            if s.state is ServerState.IDLE:
                s.idle_accum += jump
