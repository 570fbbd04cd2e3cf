import pytest

from queuesim.event_log import EventLog
from queuesim.models import EventKind, SubjectKind, Task
from queuesim.waiting_queue import WaitingQueue


def _task(task_id, at):
    return Task(id=task_id, arrival_time=at, service_duration=1.0)


def test_queue_is_fifo():
    log = EventLog()
    q = WaitingQueue(log)
    for i, at in enumerate([0.0, 0.5, 2.0], start=1):
        q.enqueue(_task(i, at), at)
    assert q.size() == 3
    assert [q.dequeue_oldest(3.0).id for _ in range(3)] == [1, 2, 3]
    assert q.size() == 0


def test_queue_logs_and_stamps_enqueue_time():
    log = EventLog()
    q = WaitingQueue(log)
    task = _task(4, 1.25)
    q.enqueue(task, 1.25)
    assert task.enqueue_time == 1.25
    q.dequeue_oldest(2.0)
    assert [r.as_tuple() for r in log] == [
        ("queue", 4, "enqueue", 1.25, None),
        ("queue", 4, "dequeue", 2.0, None),
    ]


def test_dequeue_from_empty_queue():
    with pytest.raises(IndexError):
        WaitingQueue(EventLog()).dequeue_oldest(0.0)


def test_log_rejects_out_of_order_and_foreign_kinds():
    log = EventLog()
    log.append(SubjectKind.TASK, 1, EventKind.ARRIVAL, 2.0)
    log.append(SubjectKind.TASK, 2, EventKind.ARRIVAL, 2.0)
    with pytest.raises(ValueError):
        log.append(SubjectKind.TASK, 3, EventKind.ARRIVAL, 1.0)
    with pytest.raises(ValueError):
        log.append(SubjectKind.QUEUE, 3, EventKind.ENGAGE, 3.0)
    assert len(log) == 2
    assert log.last_clock == 2.0


def test_closed_log_is_read_only():
    log = EventLog()
    log.append(SubjectKind.SERVER, 1, EventKind.ENGAGE, 0.0, 1)
    log.close()
    with pytest.raises(RuntimeError):
        log.append(SubjectKind.SERVER, 1, EventKind.RELEASE, 1.0, 1)

    records = log.records()
    assert isinstance(records, tuple)
    assert list(log) == list(records)
    assert log.for_subject(SubjectKind.SERVER, 1) == list(records)
    with pytest.raises(AttributeError):
        records[0].clock = 5.0
