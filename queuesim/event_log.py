from typing import Iterator, List, Optional, Tuple

from .models import EVENT_KINDS, EventKind, LogRecord, SubjectKind


class EventLog:
    """
    Append-only, clock-ordered record of every state transition in a run.

    The event loop (through the server pool and the waiting queue) is the only
    writer. Once the run terminates the log is closed; consumers iterate over
    it in emission order and never get mutation access.
    """

    def __init__(self):
        self._records: List[LogRecord] = []
        self._closed = False

    def append(self, subject_kind: SubjectKind, subject_id: int, event_kind: EventKind,
               clock: float, partner_id: Optional[int] = None) -> LogRecord:
        if self._closed:
            raise RuntimeError("event log is closed")
        if event_kind not in EVENT_KINDS[subject_kind]:
            raise ValueError(f"{subject_kind.value} cannot emit {event_kind.value}")
        if self._records and clock < self._records[-1].clock:
            raise ValueError(
                f"event at {clock} would precede the last logged event at {self._records[-1].clock}"
            )
        record = LogRecord(subject_kind, subject_id, event_kind, clock, partner_id)
        self._records.append(record)
        return record

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_clock(self) -> float:
        return self._records[-1].clock if self._records else 0.0

    def records(self) -> Tuple[LogRecord, ...]:
        return tuple(self._records)

    def for_subject(self, subject_kind: SubjectKind, subject_id: int) -> List[LogRecord]:
        return [r for r in self._records if r.subject_kind is subject_kind and r.subject_id == subject_id]

    def __iter__(self) -> Iterator[LogRecord]:
        return iter(tuple(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index):
        return self._records[index]
