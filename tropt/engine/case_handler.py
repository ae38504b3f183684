"""In-memory store of every case known to the master.

The handler is owned by the master loop and is never touched from worker
threads, so it carries no locks. Cases are kept in an arena keyed by id; the
queue holds ids of cases waiting for a free worker.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from collections.abc import Iterable

from tropt.core.case import Case, EvalState
from tropt.errors import CaseStateError, DuplicateCaseError

_LOGGER = logging.getLogger(__name__)


class CaseHandler:
    """Tracks pending, queued, evaluated and recently evaluated cases."""

    def __init__(self) -> None:
        self._cases: dict[uuid.UUID, Case] = {}
        self._queue: deque[uuid.UUID] = deque()
        self._in_flight: set[uuid.UUID] = set()
        self._evaluated: list[uuid.UUID] = []
        self._failed: list[uuid.UUID] = []
        self._recently_evaluated: list[uuid.UUID] = []

    def add_new_cases(self, cases: Iterable[Case]) -> None:
        """Queue ``cases`` for evaluation.

        Raises :class:`DuplicateCaseError` if any id is already known (or
        repeated in ``cases``); nothing is queued in that case.
        """
        batch = list(cases)
        seen: set[uuid.UUID] = set()
        for case in batch:
            if case.id in self._cases or case.id in seen:
                raise DuplicateCaseError(f"Case {case.id} was already submitted")
            if case.state is not EvalState.PENDING:
                raise CaseStateError(f"Case {case.id} is {case.state.value}, expected pending")
            seen.add(case.id)

        for case in batch:
            self._cases[case.id] = case
            self._queue.append(case.id)
        if batch:
            _LOGGER.debug("Queued %d new case(s); %d waiting", len(batch), len(self._queue))

    def next_queued_case(self) -> Case | None:
        """Pop the oldest waiting case and mark it as accepted by the pool."""
        if not self._queue:
            return None
        case = self._cases[self._queue.popleft()]
        case.mark_queued()
        self._in_flight.add(case.id)
        return case

    def update_case(self, evaluated: Case) -> Case:
        """Record a case returned by a worker onto the master's own instance.

        The returned case is the master's instance, now ``EVALUATED`` or
        ``FAILED``.
        """
        if evaluated.id not in self._cases:
            raise KeyError(f"Unknown case: {evaluated.id}")
        case = self._cases[evaluated.id]
        if evaluated.state is EvalState.EVALUATED:
            case.mark_evaluated(evaluated.objective)  # type: ignore[arg-type]
            self._evaluated.append(case.id)
        elif evaluated.state is EvalState.FAILED:
            case.mark_failed(evaluated.error or "evaluation failed")
            self._failed.append(case.id)
            _LOGGER.warning("Case %s failed: %s", case.id, case.error)
        else:
            raise CaseStateError(
                f"Case {evaluated.id} came back {evaluated.state.value}; expected evaluated or failed"
            )
        self._in_flight.discard(case.id)
        self._recently_evaluated.append(case.id)
        return case

    def get(self, case_id: uuid.UUID) -> Case:
        return self._cases[case_id]

    def __contains__(self, case_id: object) -> bool:
        return case_id in self._cases

    def evaluated_cases(self) -> list[Case]:
        return [self._cases[i] for i in self._evaluated]

    def failed_cases(self) -> list[Case]:
        return [self._cases[i] for i in self._failed]

    def queued_cases(self) -> list[Case]:
        """Cases still waiting for a worker."""
        return [self._cases[i] for i in self._queue]

    def in_flight_cases(self) -> list[Case]:
        """Cases handed to a worker and not yet returned."""
        return [self._cases[i] for i in self._in_flight]

    def recently_evaluated_cases(self) -> list[Case]:
        """Cases that completed (evaluated or failed) since the last clear."""
        return [self._cases[i] for i in self._recently_evaluated]

    def clear_recently_evaluated_cases(self) -> None:
        self._recently_evaluated.clear()

    @property
    def nr_evaluated(self) -> int:
        return len(self._evaluated)

    @property
    def nr_failed(self) -> int:
        return len(self._failed)

    @property
    def nr_queued(self) -> int:
        return len(self._queue)

    @property
    def nr_recently_evaluated(self) -> int:
        return len(self._recently_evaluated)

    @property
    def nr_completed(self) -> int:
        """Evaluations that used up budget: evaluated plus failed."""
        return len(self._evaluated) + len(self._failed)

    def all_cases(self) -> list[Case]:
        return list(self._cases.values())
