from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class DistributionSpec(BaseModel):
    name: str = Field(..., examples=["Exponential", "Uniform", "Table"])
    params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("distribution name is required")
        return v

# ---------- Analytical ----------
class AnalyticalRequest(BaseModel):
    servers: int = Field(1, ge=1)
    arrival: DistributionSpec
    service: DistributionSpec

class AnalyticalResponse(BaseModel):
    interarrival_rate: float
    service_rate: float
    utilization: float
    var_services: Optional[float] = None
    var_interarrivals: Optional[float] = None
    Lq: Optional[float] = None   # null when the system is unstable
    Wq: Optional[float] = None
    W: Optional[float] = None
    L: Optional[float] = None
    note: Optional[str] = None

# ---------- Simulation ----------
class SimulationRequest(BaseModel):
    ntask: int = Field(..., ge=1, le=200000)
    nserv: int = Field(..., ge=1)
    interarrival: DistributionSpec
    service: DistributionSpec
    seed: Optional[int] = 123
    run_out: bool = True
    include_events: bool = True

class LogRecord(BaseModel):
    subject_kind: str
    subject_id: int
    event_kind: str
    clock: float
    partner_id: Optional[int] = None

class TaskRow(BaseModel):
    task_id: int
    arrival_time: float
    server_id: Optional[int] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    service_time: Optional[float] = None
    waiting_time: Optional[float] = None
    turnaround_time: Optional[float] = None

class GanttBlock(BaseModel):
    server_id: int
    task_id: int
    start: float
    end: float

class RunSummary(BaseModel):
    tasks: int
    completed: int
    horizon: float
    mean_wait: float
    mean_service: float
    mean_turnaround: float
    avg_queue_length: float
    utilization: float
    server_utilization: List[float]
    arrival_rate: float
    littles_lq: float

class SimulationResponse(BaseModel):
    clock: float
    waiting: List[int]
    events: List[LogRecord]
    rows: List[TaskRow]
    gantt: List[GanttBlock]
    summary: RunSummary
    analytical: Optional[AnalyticalResponse] = None

class DistributionInfo(BaseModel):
    name: str
    params: List[str]
