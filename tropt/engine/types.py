"""Shared engine datatypes (surfaces)."""

from __future__ import annotations

from enum import Enum


class TerminationReason(str, Enum):
    """Why a search stopped (or ``NOT_FINISHED`` while it runs)."""

    NOT_FINISHED = "not_finished"
    MAX_EVALUATIONS_REACHED = "max_evaluations_reached"
    MINIMUM_RADIUS_REACHED = "minimum_radius_reached"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not TerminationReason.NOT_FINISHED


class SearchState(str, Enum):
    """Control states of the trust-region loop."""

    INITIALIZING = "initializing"
    COMPLETING_MODEL = "completing_model"
    MODEL_READY = "model_ready"
    STEPPING = "stepping"
    FINISHED = "finished"


class ModelDegree(str, Enum):
    """Polynomial degree of the surrogate."""

    LINEAR = "linear"
    QUADRATIC = "quadratic"
