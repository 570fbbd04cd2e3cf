"""End-to-end checks of the event loop."""

import pytest

from queuesim.distributions import ReplaySampler
from queuesim.errors import ConfigError, DistributionSpecError
from queuesim.models import DistributionSpec, EventKind, ServerState, SimulationConfig, SubjectKind
from queuesim.simulation import LoopState, Simulation, simulate


EXP = DistributionSpec(name="Exponential", params={"rate": 1.0})


def _replay(gaps, services, nserv=1, **kw):
    cfg = SimulationConfig(ntask=len(gaps), nserv=nserv, **kw)
    return simulate(cfg, ReplaySampler(gaps), ReplaySampler(services))

def _times(result):
    return [(t.arrival_time, t.start_time, t.end_time) for t in result.tasks]

def _random_run(seed=11, ntask=400, nserv=3):
    cfg = SimulationConfig(
        ntask=ntask,
        nserv=nserv,
        interarrival=DistributionSpec(name="Exponential", params={"rate": 2.5}),
        service=DistributionSpec(name="Gamma", params={"shape": 2.0, "scale": 0.5}),
        seed=seed,
    )
    return simulate(cfg)


def test_scenario_without_queueing():
    """Service shorter than the gap: every task starts on arrival."""
    res = _replay([5, 5, 5], [3, 3, 3])
    assert _times(res) == [(0, 0, 3), (5, 5, 8), (10, 10, 13)]
    assert res.clock == 13


def test_scenario_with_queueing():
    """Service longer than the gap: tasks 2 and 3 wait their turn."""
    res = _replay([1, 1, 1], [5, 5, 5])
    assert _times(res) == [(0, 0, 5), (1, 5, 10), (2, 10, 15)]
    assert res.waiting == []
    assert all(s.state is ServerState.IDLE for s in res.servers)


@pytest.mark.parametrize("ntask,nserv", [(0, 1), (1, 0), (-3, 2), (2, -1), (1.5, 1), (1, True)])
def test_non_positive_counts_fail_at_construction(ntask, nserv):
    """Bad task or server counts raise before a log exists."""
    cfg = SimulationConfig(ntask=ntask, nserv=nserv, interarrival=EXP, service=EXP)
    with pytest.raises(ConfigError):
        Simulation(cfg)


def test_bad_distribution_fails_at_construction():
    cfg = SimulationConfig(
        ntask=5, nserv=1, interarrival=EXP,
        service=DistributionSpec(name="Exponential", params={"rate": -1.0}),
    )
    with pytest.raises(DistributionSpecError):
        Simulation(cfg)


def test_overflowing_sampler_fails_before_the_run():
    cfg = SimulationConfig(
        ntask=50, nserv=1, seed=1,
        interarrival=DistributionSpec(name="Lognormal", params={"mu": 700.0, "sigma": 5.0}),
        service=EXP,
    )
    with pytest.raises(DistributionSpecError):
        Simulation(cfg)


def test_missing_distribution_and_short_replay():
    with pytest.raises(ConfigError):
        Simulation(SimulationConfig(ntask=2, nserv=1, interarrival=EXP))
    cfg = SimulationConfig(ntask=3, nserv=1)
    with pytest.raises(ConfigError):
        Simulation(cfg, ReplaySampler([1, 1]), ReplaySampler([1, 1, 1]))


def test_seed_must_be_int_or_none():
    with pytest.raises(ConfigError):
        Simulation(SimulationConfig(ntask=1, nserv=1, interarrival=EXP, service=EXP, seed="42"))
    with pytest.raises(ConfigError):
        Simulation(SimulationConfig(ntask=1, nserv=1, interarrival=EXP, service=EXP, seed=-1))


def test_same_seed_gives_identical_logs():
    a = _random_run(seed=5)
    b = _random_run(seed=5)
    c = _random_run(seed=6)
    assert [r.as_tuple() for r in a.log] == [r.as_tuple() for r in b.log]
    assert [r.as_tuple() for r in a.log] != [r.as_tuple() for r in c.log]


def test_clock_never_goes_back():
    res = _random_run()
    clocks = [r.clock for r in res.log]
    assert clocks == sorted(clocks)
    assert res.clock == clocks[-1]


def test_task_times_are_ordered():
    res = _random_run()
    for t in res.tasks:
        assert t.arrival_time <= t.enqueue_time <= t.start_time <= t.end_time
        assert t.end_time - t.start_time == pytest.approx(t.service_duration)


def test_every_task_passes_each_transition_once():
    res = _random_run()
    expected = [
        (SubjectKind.TASK, EventKind.ARRIVAL),
        (SubjectKind.QUEUE, EventKind.ENQUEUE),
        (SubjectKind.QUEUE, EventKind.DEQUEUE),
        (SubjectKind.TASK, EventKind.START),
        (SubjectKind.TASK, EventKind.END),
    ]
    for t in res.tasks:
        seen = [
            (r.subject_kind, r.event_kind) for r in res.log
            if r.subject_kind in (SubjectKind.TASK, SubjectKind.QUEUE) and r.subject_id == t.id
        ]
        assert seen == expected

    engaged = [r.partner_id for r in res.log if r.event_kind is EventKind.ENGAGE]
    released = [r.partner_id for r in res.log if r.event_kind is EventKind.RELEASE]
    assert sorted(engaged) == sorted(released) == [t.id for t in res.tasks]


def test_busy_servers_never_exceed_pool():
    res = _random_run(nserv=2)
    busy = 0
    for r in res.log:
        if r.event_kind is EventKind.ENGAGE:
            busy += 1
        elif r.event_kind is EventKind.RELEASE:
            busy -= 1
        assert 0 <= busy <= 2
    assert busy == 0
    assert len(res.servers) == 2


def test_dispatch_prefers_the_longest_idle_server():
    """Server 2 has idled since t=2, server 1 only since t=5: task 3 goes to server 2."""
    res = _replay([1, 5, 1], [5, 1, 1], nserv=2)
    assert [t.server_id for t in res.tasks] == [1, 2, 2]
    assert _times(res) == [(0, 0, 5), (1, 1, 2), (6, 6, 7)]


def test_server_freed_in_a_step_is_credited_the_jump():
    """At t=3 both servers have idle_accum 3, so the tie goes to server 1."""
    res = _replay([3, 1], [1, 1], nserv=2)
    assert [t.server_id for t in res.tasks] == [1, 1]
    assert _times(res) == [(0, 0, 1), (3, 3, 4)]


def test_ties_go_to_lowest_server_id():
    res = _replay([0, 0, 0], [1, 1, 1], nserv=2)
    assert [t.server_id for t in res.tasks] == [1, 2, 1]
    assert _times(res) == [(0, 0, 1), (0, 0, 1), (0, 1, 2)]


def test_release_is_drained_before_same_instant_arrival():
    """At t=2 task 1 ends and task 2 starts before task 3 is admitted."""
    res = _replay([1, 1, 1], [2, 2, 2])
    records = res.log.records()

    def index(kind, subject_id, event):
        return next(i for i, r in enumerate(records)
                    if r.subject_kind is kind and r.subject_id == subject_id and r.event_kind is event)

    assert index(SubjectKind.TASK, 1, EventKind.END) < index(SubjectKind.TASK, 2, EventKind.START)
    assert index(SubjectKind.TASK, 2, EventKind.START) < index(SubjectKind.TASK, 3, EventKind.ARRIVAL)
    assert _times(res) == [(0, 0, 2), (1, 2, 4), (2, 4, 6)]


def test_without_run_out_work_is_left_in_flight():
    res = _replay([1, 1, 1], [5, 5, 5], run_out=False)
    assert res.clock == 2
    assert [t.id for t in res.waiting] == [2, 3]
    assert res.servers[0].state is ServerState.BUSY
    assert res.servers[0].current_task_id == 1
    assert res.tasks[0].end_time is None


def test_run_is_single_shot():
    sim = Simulation(SimulationConfig(ntask=3, nserv=1, interarrival=EXP, service=EXP))
    sim.run()
    assert sim.state is LoopState.TERMINATED
    assert sim.log.closed
    with pytest.raises(RuntimeError):
        sim.run()


def test_zero_gap_arrival_is_logged_before_the_previous_start():
    """With a zero gap task 2 is admitted at t=0 before task 1 leaves the queue."""
    res = _replay([0, 1], [1, 1], nserv=2)
    records = res.log.records()

    def index(kind, subject_id, event):
        return next(i for i, r in enumerate(records)
                    if r.subject_kind is kind and r.subject_id == subject_id and r.event_kind is event)

    assert index(SubjectKind.TASK, 2, EventKind.ARRIVAL) < index(SubjectKind.TASK, 1, EventKind.START)
    assert [t.server_id for t in res.tasks] == [1, 2]
    assert _times(res) == [(0, 0, 1), (0, 0, 1)]
