from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ServerState(str, Enum):
    IDLE = "idle"
    BUSY = "busy"

class SubjectKind(str, Enum):
    TASK = "task"
    SERVER = "server"
    QUEUE = "queue"

class EventKind(str, Enum):
    ARRIVAL = "arrival"
    START = "start"
    END = "end"
    ENGAGE = "engage"
    RELEASE = "release"
    ENQUEUE = "enqueue"
    DEQUEUE = "dequeue"

# which event kinds each subject may emit
EVENT_KINDS = {
    SubjectKind.TASK: (EventKind.ARRIVAL, EventKind.START, EventKind.END),
    SubjectKind.SERVER: (EventKind.ENGAGE, EventKind.RELEASE),
    SubjectKind.QUEUE: (EventKind.ENQUEUE, EventKind.DEQUEUE),
}

@dataclass
class DistributionSpec:
    name: str                  # e.g. "Exponential", "negative_binomial"
    params: Dict[str, Any] = field(default_factory=dict)  # e.g. {"rate": 2.0} or {"min": 1, "max": 3}

@dataclass
class SimulationConfig:
    ntask: int                                     # tasks to admit
    nserv: int                                     # c
    interarrival: Optional[DistributionSpec] = None
    service: Optional[DistributionSpec] = None
    seed: Optional[int] = 123                      # reproducible by default
    run_out: bool = True                           # finish admitted work after the last arrival

@dataclass
class Task:
    id: int
    arrival_time: float
    service_duration: float
    interarrival: float = 0.0        # sampled gap to the next arrival
    enqueue_time: Optional[float] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    server_id: Optional[int] = None

@dataclass
class Server:
    id: int
    state: ServerState = ServerState.IDLE
    idle_accum: Optional[float] = 0.0      # only while idle
    release_time: Optional[float] = None   # only while busy
    current_task: Optional[Task] = None    # only while busy

    @property
    def current_task_id(self) -> Optional[int]:
        return self.current_task.id if self.current_task is not None else None

@dataclass(frozen=True)
class LogRecord:
    subject_kind: SubjectKind
    subject_id: int
    event_kind: EventKind
    clock: float
    partner_id: Optional[int] = None   # server for task events, task for server events

    def as_tuple(self) -> Tuple[str, int, str, float, Optional[int]]:
        return (self.subject_kind.value, self.subject_id, self.event_kind.value, self.clock, self.partner_id)

@dataclass
class SimulationResult:
    config: SimulationConfig
    log: Any                  # queuesim.event_log.EventLog, closed
    tasks: List[Task]
    servers: List[Server]     # final snapshots
    waiting: List[Task]       # still queued at termination
    clock: float
