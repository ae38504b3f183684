"""Master-side bookkeeping of the worker pool.

The overseer maps "assign" and "reclaim" onto a fixed set of worker ranks
``1..N``. It never queues work itself: assigning with no idle worker is a
programming error and fails fast with :class:`WorkerPoolExhausted`.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tropt.core.case import Case
from tropt.engine.executors.transport import MsgTag
from tropt.engine.interfaces import Transport
from tropt.errors import WorkerPoolExhausted

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerStatus:
    """Availability of one worker rank."""

    rank: int
    working: bool = False
    started_at: float | None = None
    current_case: uuid.UUID | None = None

    def start(self, case_id: uuid.UUID, now: float) -> None:
        self.working = True
        self.started_at = now
        self.current_case = case_id

    def stop(self) -> None:
        self.working = False
        self.started_at = None
        self.current_case = None

    def working_seconds(self, now: float) -> float:
        """Elapsed busy time; ``0.0`` while idle."""
        if not self.working or self.started_at is None:
            return 0.0
        return now - self.started_at


class Overseer:
    """Hands cases to idle workers and reclaims them on completion.

    Parameters
    ----------
    transport : Transport
        Message fabric to the workers.
    model : Any
        Payload broadcast once to every worker before any case traffic
        (the evaluator, in practice).
    clock : Callable[[], float]
        Monotonic clock used for busy durations.
    """

    def __init__(
        self,
        transport: Transport,
        model: Any = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._clock = clock
        self._workers = {
            rank: WorkerStatus(rank) for rank in range(1, transport.num_workers + 1)
        }
        self._transport.broadcast(MsgTag.MODEL_BROADCAST, model)
        _LOGGER.info("Initialized overseer with %d worker(s)", len(self._workers))

    @property
    def workers(self) -> dict[int, WorkerStatus]:
        return self._workers

    def assign_case(self, case: Case) -> int:
        """Send ``case`` to the lowest idle rank and return that rank."""
        worker = self._get_free_worker()
        self._transport.send(worker.rank, MsgTag.CASE_UNEVAL, case.to_dict())
        worker.start(case.id, self._clock())
        _LOGGER.debug("Assigned case %s to worker %d", case.id, worker.rank)
        return worker.rank

    def recv_evaluated_case(self, timeout_s: float | None = None) -> tuple[Case, int]:
        """Block for the next completed case; return it with the worker rank."""
        msg = self._transport.recv(timeout_s)
        if msg.tag != MsgTag.CASE_EVAL:
            raise RuntimeError(f"Unexpected message tag from worker {msg.source}: {msg.tag!r}")
        worker = self._workers.get(msg.source)
        if worker is None or not worker.working:
            raise RuntimeError(f"Received a case from worker {msg.source}, which is not busy")
        case = Case.from_dict(msg.payload)
        if case.id != worker.current_case:
            raise RuntimeError(
                f"Worker {worker.rank} returned case {case.id}, expected {worker.current_case}"
            )
        worker.stop()
        _LOGGER.debug("Received case %s from worker %d", case.id, worker.rank)
        return case, worker.rank

    def _get_free_worker(self) -> WorkerStatus:
        for rank in sorted(self._workers):
            if not self._workers[rank].working:
                return self._workers[rank]
        raise WorkerPoolExhausted("Cannot assign case: no free workers")

    def number_of_free_workers(self) -> int:
        return sum(1 for w in self._workers.values() if not w.working)

    def number_of_busy_workers(self) -> int:
        return len(self._workers) - self.number_of_free_workers()

    def get_longest_running_worker(self) -> WorkerStatus | None:
        """Busy worker with the largest elapsed time, ties to the lowest rank."""
        now = self._clock()
        longest: WorkerStatus | None = None
        for rank in sorted(self._workers):
            worker = self._workers[rank]
            if not worker.working:
                continue
            if longest is None or worker.working_seconds(now) > longest.working_seconds(now):
                longest = worker
        return longest

    def longest_running_seconds(self) -> float:
        worker = self.get_longest_running_worker()
        return 0.0 if worker is None else worker.working_seconds(self._clock())

    def terminate_workers(self) -> None:
        """Tell every rank to stop, busy or not. No acknowledgement is awaited."""
        for rank in sorted(self._workers):
            self._transport.send(rank, MsgTag.TERMINATE, None)
        _LOGGER.info("Sent terminate to %d worker(s)", len(self._workers))

    def shutdown(self) -> None:
        """Terminate every worker and release the transport."""
        try:
            self.terminate_workers()
        finally:
            self._transport.close()
