"""
Derived statistics computed from a finished run's EventLog.

Everything here reads the log in emission order and never mutates it, so the
same log can feed any number of reports.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .models import EventKind, LogRecord, SimulationResult, SubjectKind


@dataclass
class TaskRow:
    task_id: int
    arrival_time: float
    server_id: Optional[int] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    service_time: Optional[float] = None
    waiting_time: Optional[float] = None
    turnaround_time: Optional[float] = None

@dataclass
class GanttBlock:
    server_id: int
    task_id: int
    start: float
    end: float

@dataclass
class RunSummary:
    tasks: int
    completed: int
    horizon: float
    mean_wait: float
    mean_service: float
    mean_turnaround: float
    avg_queue_length: float
    utilization: float                 # mean over servers
    server_utilization: List[float]
    arrival_rate: float
    littles_lq: float                  # arrival_rate * mean_wait, compare with avg_queue_length


def _last_clock(log: Iterable[LogRecord]) -> float:
    last = 0.0
    for r in log:
        last = r.clock
    return last

def _mean(xs: List[float]) -> float:
    return sum(xs) / len(xs) if xs else 0.0


def task_rows(log: Iterable[LogRecord]) -> List[TaskRow]:
    rows: Dict[int, TaskRow] = {}
    for r in log:
        if r.subject_kind is not SubjectKind.TASK:
            continue
        if r.event_kind is EventKind.ARRIVAL:
            rows[r.subject_id] = TaskRow(task_id=r.subject_id, arrival_time=r.clock)
        elif r.event_kind is EventKind.START:
            row = rows[r.subject_id]
            row.start_time = r.clock
            row.server_id = r.partner_id
            row.waiting_time = r.clock - row.arrival_time
        elif r.event_kind is EventKind.END:
            row = rows[r.subject_id]
            row.end_time = r.clock
            row.service_time = r.clock - row.start_time
            row.turnaround_time = r.clock - row.arrival_time
    return [rows[k] for k in sorted(rows)]


def gantt(log: Iterable[LogRecord]) -> List[GanttBlock]:
    started: Dict[int, float] = {}
    blocks: List[GanttBlock] = []
    for r in log:
        if r.subject_kind is not SubjectKind.SERVER:
            continue
        if r.event_kind is EventKind.ENGAGE:
            started[r.subject_id] = r.clock
        else:
            blocks.append(GanttBlock(
                server_id=r.subject_id,
                task_id=r.partner_id,
                start=started.pop(r.subject_id),
                end=r.clock,
            ))
    return blocks


def queue_length_trace(log: Iterable[LogRecord]) -> List[Tuple[float, int]]:
    """
    Step function of the waiting-line length as (time, length) change points.

    Events sharing a clock value collapse into one point holding the length
    after the last of them, so zero-width excursions (enqueue then dequeue at
    the same instant) do not appear.
    """
    trace: List[Tuple[float, int]] = [(0.0, 0)]
    length = 0
    for r in log:
        if r.subject_kind is not SubjectKind.QUEUE:
            continue
        length += 1 if r.event_kind is EventKind.ENQUEUE else -1
        if trace[-1][0] == r.clock:
            trace[-1] = (r.clock, length)
        else:
            trace.append((r.clock, length))

    # drop points that do not change the level
    steps = [trace[0]]
    for point in trace[1:]:
        if point[1] != steps[-1][1]:
            steps.append(point)
    return steps


def queue_length_integral(log: Iterable[LogRecord], horizon: Optional[float] = None) -> float:
    log = list(log)
    if horizon is None:
        horizon = _last_clock(log)
    trace = queue_length_trace(log)
    area = 0.0
    for (t0, q), nxt in zip(trace, trace[1:] + [(horizon, 0)]):
        t1 = min(nxt[0], horizon)
        if t1 > t0:
            area += q * (t1 - t0)
    return area


def time_average_queue_length(log: Iterable[LogRecord], horizon: Optional[float] = None) -> float:
    log = list(log)
    if horizon is None:
        horizon = _last_clock(log)
    if horizon <= 0:
        return 0.0
    return queue_length_integral(log, horizon) / horizon


def server_utilization(log: Iterable[LogRecord], nserv: int, horizon: Optional[float] = None) -> List[float]:
    """
    Busy fraction of each server over [0, horizon].

    A service still running at the horizon counts up to the horizon. With the
    default horizon (the last event) idle time after it is not counted.
    """
    log = list(log)
    if horizon is None:
        horizon = _last_clock(log)
    busy = [0.0] * nserv
    started: Dict[int, float] = {}
    for r in log:
        if r.subject_kind is not SubjectKind.SERVER:
            continue
        if r.event_kind is EventKind.ENGAGE:
            started[r.subject_id] = r.clock
        else:
            t0 = started.pop(r.subject_id)
            busy[r.subject_id - 1] += max(0.0, min(r.clock, horizon) - t0)
    for server_id, t0 in started.items():
        busy[server_id - 1] += max(0.0, horizon - t0)

    if horizon <= 0:
        return [0.0] * nserv
    return [b / horizon for b in busy]


def summarize(result: SimulationResult, horizon: Optional[float] = None) -> RunSummary:
    records = list(result.log)
    if horizon is None:
        horizon = _last_clock(records)

    rows = task_rows(records)
    waits = [r.waiting_time for r in rows if r.waiting_time is not None]
    services = [r.service_time for r in rows if r.service_time is not None]
    turnarounds = [r.turnaround_time for r in rows if r.turnaround_time is not None]

    util = server_utilization(records, result.config.nserv, horizon)
    arrival_rate = len(rows) / horizon if horizon > 0 else 0.0
    mean_wait = _mean(waits)

    return RunSummary(
        tasks=len(rows),
        completed=len(turnarounds),
        horizon=horizon,
        mean_wait=mean_wait,
        mean_service=_mean(services),
        mean_turnaround=_mean(turnarounds),
        avg_queue_length=time_average_queue_length(records, horizon),
        utilization=_mean(util),
        server_utilization=util,
        arrival_rate=arrival_rate,
        littles_lq=arrival_rate * mean_wait,
    )
