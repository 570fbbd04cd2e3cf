import logging
import math
from enum import Enum
from typing import List

import numpy as np

from .distributions import ReplaySampler, build_sampler
from .errors import ConfigError
from .event_log import EventLog
from .models import EventKind, SimulationConfig, SimulationResult, SubjectKind, Task
from .servers import ServerPool
from .validators import require_count
from .waiting_queue import WaitingQueue

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    INITIALIZING = "initializing"
    ADMITTING_ARRIVAL = "admitting_arrival"
    DRAINING_QUEUE = "draining_queue"
    ADVANCING_CLOCK = "advancing_clock"
    RELEASING_SERVERS = "releasing_servers"
    UPDATING_IDLE = "updating_idle"
    RUNNING_OUT = "running_out"
    TERMINATED = "terminated"


class Simulation:
    """
    Event loop and clock for one G/G/c FIFO run.

    Every argument is checked here, so a run either fails before any event
    exists or completes. The first task arrives at clock 0; the interarrival
    gap sampled with task t sets when task t+1 arrives. Each task draws one
    interarrival then one service sample from the shared stream.

    Between two arrivals the loop repeats: drain the queue into idle servers,
    jump to min(soonest release, next arrival), release everything due at
    that instant, credit idle time. Releases and the dispatches they allow
    are finished before a same-instant arrival is admitted.
    """

    def __init__(self, config: SimulationConfig, interarrival_sampler=None, service_sampler=None):
        self.config = config
        self.ntask = require_count("ntask", config.ntask)
        self.nserv = require_count("nserv", config.nserv)
        if config.seed is not None and (isinstance(config.seed, bool) or not isinstance(config.seed, int)
                                        or config.seed < 0):
            raise ConfigError("seed must be a non-negative integer or None")

        rng = np.random.default_rng(config.seed)
        self.interarrival = self._sampler("interarrival", config.interarrival, interarrival_sampler, rng)
        self.service = self._sampler("service", config.service, service_sampler, rng)

        self.state = LoopState.INITIALIZING
        self.clock = 0.0
        self.log = EventLog()
        self.pool = ServerPool(self.nserv, self.log)
        self.queue = WaitingQueue(self.log)
        self.tasks: List[Task] = []

    def _sampler(self, role, spec, sampler, rng):
        if sampler is None:
            if spec is None:
                raise ConfigError(f"{role} distribution is required")
            return build_sampler(spec, rng)
        if isinstance(sampler, ReplaySampler) and sampler.remaining < self.ntask:
            raise ConfigError(
                f"{role} replay has {sampler.remaining} values, need {self.ntask}"
            )
        return sampler

    # ---------- transitions ----------
    def _drain_queue(self) -> None:
        self.state = LoopState.DRAINING_QUEUE
        while self.queue.size() > 0:
            server = self.pool.pick_idlest()
            if server is None:
                break
            task = self.queue.dequeue_oldest(self.clock)
            self.pool.engage(server, task, self.clock)

    def _step(self, horizon: float) -> None:
        """Jump to the sooner of the next release and `horizon`."""
        self.state = LoopState.ADVANCING_CLOCK
        soonest = self.pool.pick_soonest_release()
        target = horizon if soonest is None else min(soonest.release_time, horizon)
        jump = target - self.clock
        self.clock = target

        self.state = LoopState.RELEASING_SERVERS
        server = self.pool.pick_soonest_release()
        while server is not None and server.release_time == self.clock:
            self.pool.release(server, self.clock)
            server = self.pool.pick_soonest_release()

        self.state = LoopState.UPDATING_IDLE
        self.pool.advance_idle(jump)

    def _advance_until(self, next_arrival: float) -> None:
        # a zero gap admits straight away; the queue waits for the next drain
        if self.clock >= next_arrival:
            return
        while True:
            self._drain_queue()
            if self.clock >= next_arrival:
                return
            self._step(next_arrival)

    def _admit(self, task_id: int, service: float, gap: float) -> Task:
        self.state = LoopState.ADMITTING_ARRIVAL
        task = Task(id=task_id, arrival_time=self.clock, service_duration=service, interarrival=gap)
        self.tasks.append(task)
        self.log.append(SubjectKind.TASK, task.id, EventKind.ARRIVAL, self.clock)
        self.queue.enqueue(task, self.clock)
        return task

    def _run_out(self) -> None:
        self.state = LoopState.RUNNING_OUT
        logger.debug("last arrival at %.6g; running out %d queued, %d in service",
                     self.clock, self.queue.size(), self.pool.busy_count())
        while True:
            self._drain_queue()
            if self.pool.busy_count() == 0:
                return
            self._step(math.inf)

    # ---------- run ----------
    def run(self) -> SimulationResult:
        if self.state is not LoopState.INITIALIZING:
            raise RuntimeError("a Simulation runs once; build a new one for another run")

        logger.info("simulating %d tasks on %d servers (seed=%s)", self.ntask, self.nserv, self.config.seed)

        next_arrival = 0.0
        for task_id in range(1, self.ntask + 1):
            gap = self.interarrival.sample()
            service = self.service.sample()
            self._advance_until(next_arrival)
            self._admit(task_id, service, gap)
            next_arrival = self.clock + gap

        if self.config.run_out:
            self._run_out()

        self.state = LoopState.TERMINATED
        self.log.close()
        logger.info("run finished at clock %.6g with %d events (%d waiting, %d busy)",
                    self.clock, len(self.log), self.queue.size(), self.pool.busy_count())

        return SimulationResult(
            config=self.config,
            log=self.log,
            tasks=list(self.tasks),
            servers=self.pool.snapshot(),
            waiting=self.queue.snapshot(),
            clock=self.clock,
        )


def simulate(config: SimulationConfig, interarrival_sampler=None, service_sampler=None) -> SimulationResult:
    return Simulation(config, interarrival_sampler, service_sampler).run()
