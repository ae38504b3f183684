"""Case data structures.

A :class:`Case` is one candidate point in variable space together with its
evaluation lifecycle. The variable mappings are fixed at construction; only the
evaluation state (and the objective value that comes with it) moves, and only
forward: ``PENDING -> QUEUED -> EVALUATED`` or ``PENDING -> QUEUED -> FAILED``.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

import numpy as np

from tropt.errors import CaseStateError


class EvalState(str, Enum):
    """Evaluation state of a case."""

    PENDING = "pending"
    QUEUED = "queued"
    EVALUATED = "evaluated"
    FAILED = "failed"


class CaseOrigin(str, Enum):
    """Operation that produced a case (diagnostics only)."""

    INITIAL = "initial"
    PERTURBATION = "perturbation"
    MODEL_STEP = "model_step"
    REPLACEMENT = "replacement"


_FORWARD: dict[EvalState, frozenset[EvalState]] = {
    EvalState.PENDING: frozenset({EvalState.QUEUED}),
    EvalState.QUEUED: frozenset({EvalState.EVALUATED, EvalState.FAILED}),
    EvalState.EVALUATED: frozenset(),
    EvalState.FAILED: frozenset(),
}


class Case:
    """A point in variable space plus its evaluation outcome.

    Parameters
    ----------
    real_variables : Mapping[str, float]
        Continuous variables, in a stable order.
    integer_variables : Mapping[str, int]
        Discrete variables. Keys must not overlap ``real_variables``.
    origin : CaseOrigin
        Operation that created the case.
    case_id : uuid.UUID | None
        Explicit id; a fresh ``uuid4`` is generated when omitted.
    """

    __slots__ = ("_id", "_real", "_integer", "_state", "_objective", "origin", "error")

    def __init__(
        self,
        real_variables: Mapping[str, float] | None = None,
        integer_variables: Mapping[str, int] | None = None,
        *,
        origin: CaseOrigin = CaseOrigin.INITIAL,
        case_id: uuid.UUID | None = None,
    ) -> None:
        real = {str(k): float(v) for k, v in (real_variables or {}).items()}
        integer = {str(k): int(v) for k, v in (integer_variables or {}).items()}
        overlap = set(real) & set(integer)
        if overlap:
            raise ValueError(f"Variables declared both real and integer: {sorted(overlap)}")

        self._id = case_id or uuid.uuid4()
        self._real = MappingProxyType(real)
        self._integer = MappingProxyType(integer)
        self._state = EvalState.PENDING
        self._objective: float | None = None
        self.origin = CaseOrigin(origin)
        self.error: str | None = None

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def real_variables(self) -> Mapping[str, float]:
        return self._real

    @property
    def integer_variables(self) -> Mapping[str, int]:
        return self._integer

    @property
    def state(self) -> EvalState:
        return self._state

    @property
    def objective(self) -> float | None:
        """Objective value, only available once the case is ``EVALUATED``."""
        return self._objective

    @property
    def is_evaluated(self) -> bool:
        return self._state is EvalState.EVALUATED

    def _transition(self, target: EvalState) -> None:
        if target not in _FORWARD[self._state]:
            raise CaseStateError(
                f"Case {self._id} cannot move from {self._state.value} to {target.value}"
            )
        self._state = target

    def mark_queued(self) -> None:
        self._transition(EvalState.QUEUED)

    def mark_evaluated(self, objective: float) -> None:
        value = float(objective)
        if not math.isfinite(value):
            raise ValueError(f"Objective for case {self._id} is not finite: {objective!r}")
        self._transition(EvalState.EVALUATED)
        self._objective = value

    def mark_failed(self, error: str) -> None:
        self._transition(EvalState.FAILED)
        self.error = error

    def variable_ids(self) -> list[str]:
        """Variable ids in vector order: reals first, then integers."""
        return [*self._real.keys(), *self._integer.keys()]

    def vector(self) -> np.ndarray:
        """Return the variables as a float vector in :meth:`variable_ids` order."""
        values = [*self._real.values(), *(float(v) for v in self._integer.values())]
        return np.asarray(values, dtype=np.float64)

    @classmethod
    def from_vector(
        cls,
        template: Case,
        vec: np.ndarray,
        origin: CaseOrigin = CaseOrigin.PERTURBATION,
    ) -> Case:
        """Build a new case with ``template``'s variable layout and ``vec`` values.

        Integer variables are rounded to the nearest integer.
        """
        vec = np.asarray(vec, dtype=np.float64).ravel()
        n_real = len(template.real_variables)
        if vec.shape[0] != n_real + len(template.integer_variables):
            raise ValueError(
                f"Vector of length {vec.shape[0]} does not match case with "
                f"{n_real + len(template.integer_variables)} variables"
            )
        real = dict(zip(template.real_variables, vec[:n_real].tolist()))
        integer = {
            key: int(round(value))
            for key, value in zip(template.integer_variables, vec[n_real:].tolist())
        }
        return cls(real, integer, origin=origin)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self._id),
            "real_variables": dict(self._real),
            "integer_variables": dict(self._integer),
            "state": self._state.value,
            "objective": self._objective,
            "origin": self.origin.value,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Case:
        case = cls(
            data.get("real_variables", {}),
            data.get("integer_variables", {}),
            origin=CaseOrigin(data.get("origin", CaseOrigin.INITIAL.value)),
            case_id=uuid.UUID(str(data["id"])),
        )
        # Restore state without replaying transitions.
        case._state = EvalState(data.get("state", EvalState.PENDING.value))
        objective = data.get("objective")
        case._objective = None if objective is None else float(objective)
        case.error = data.get("error")
        return case

    def __reduce__(self) -> tuple[Any, ...]:
        return (Case.from_dict, (self.to_dict(),))

    def __repr__(self) -> str:
        return (
            f"Case(id={str(self._id)[:8]}, state={self._state.value}, "
            f"objective={self._objective}, origin={self.origin.value})"
        )
