import logging
import math
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import (
    AnalyticalRequest, AnalyticalResponse,
    DistributionInfo,
    SimulationRequest, SimulationResponse,
)

from queuesim.analytical import approximate
from queuesim.distributions import FAMILIES
from queuesim.errors import SimulationError
from queuesim.models import DistributionSpec as CoreDistributionSpec, SimulationConfig
from queuesim.simulation import simulate
from queuesim.statistics import gantt, summarize, task_rows

logger = logging.getLogger(__name__)

app = FastAPI(title="G/G/c Queue Simulator API", version="1.0")

# allow frontend (React/etc.) to call backend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(SimulationError)
async def simulation_error_handler(request: Request, exc: SimulationError):
    logger.info("rejected %s: %s", request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": type(exc).__name__})

def _analytical_response(result) -> AnalyticalResponse:
    # JSON has no infinity; unstable figures go out as null
    fields = {k: (None if isinstance(v, float) and math.isinf(v) else v) for k, v in result.__dict__.items()}
    return AnalyticalResponse(**fields)

def _to_core_dist(d):
    # convert pydantic schema -> core dataclass
    return CoreDistributionSpec(name=d.name, params=dict(d.params))

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/distributions", response_model=List[DistributionInfo])
def distributions():
    return [DistributionInfo(name=cls.family, params=list(cls.param_names)) for cls in FAMILIES]

@app.post("/analytical", response_model=AnalyticalResponse)
def analytical(req: AnalyticalRequest):
    config = SimulationConfig(
        ntask=1,
        nserv=req.servers,
        interarrival=_to_core_dist(req.arrival),
        service=_to_core_dist(req.service),
    )
    return _analytical_response(approximate(config))

@app.post("/simulate", response_model=SimulationResponse)
def simulate_endpoint(req: SimulationRequest):
    config = SimulationConfig(
        ntask=req.ntask,
        nserv=req.nserv,
        interarrival=_to_core_dist(req.interarrival),
        service=_to_core_dist(req.service),
        seed=req.seed,
        run_out=req.run_out,
    )
    res = simulate(config)

    # the analytical figures are optional: heavy tails have no finite mean
    try:
        approx = _analytical_response(approximate(config))
    except SimulationError as exc:
        logger.info("no analytical figures for this run: %s", exc)
        approx = None

    events = [
        {
            "subject_kind": r.subject_kind.value,
            "subject_id": r.subject_id,
            "event_kind": r.event_kind.value,
            "clock": r.clock,
            "partner_id": r.partner_id,
        }
        for r in res.log
    ] if req.include_events else []

    # convert dataclasses -> dicts for pydantic response
    return SimulationResponse(
        clock=res.clock,
        waiting=[t.id for t in res.waiting],
        events=events,
        rows=[r.__dict__ for r in task_rows(res.log)],
        gantt=[g.__dict__ for g in gantt(res.log)],
        summary=summarize(res).__dict__,
        analytical=approx,
    )
