"""Derivative-free trust-region search.

Every call to :meth:`TrustRegionSearch.iterate` advances a small state
machine::

    INITIALIZING -> COMPLETING_MODEL -> MODEL_READY -> STEPPING -> INITIALIZING
                                                     \\-> INITIALIZING (no step)

A fresh :class:`~tropt.engine.surrogate.PolyModel` is built around the
tentative best case at the start of each trust-region iteration. Once its
samples are evaluated the model is fitted and its Cauchy point inside the
ball is submitted as a real case. The ratio between actual and predicted
improvement decides whether that case becomes the new tentative best and how
the radius changes. The search ends when the evaluation budget is spent or the
radius drops below its floor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from tropt.core.case import Case, CaseOrigin, EvalState
from tropt.core.variables import VariableSpace
from tropt.engine.case_handler import CaseHandler
from tropt.engine.surrogate.poly_model import PolyModel
from tropt.engine.types import ModelDegree, SearchState, TerminationReason
from tropt.errors import ModelDegenerate

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrustRegionConfig:
    """Settings of a trust-region run.

    ``eta_accept`` and ``eta_expand`` are thresholds on the ratio of actual to
    predicted improvement; ``gamma_dec`` and ``gamma_inc`` are the radius
    factors applied on rejection and on a very successful boundary step.
    """

    initial_radius: float = 1.0
    minimum_radius: float = 1e-3
    max_radius: float = float("inf")
    max_evaluations: int = 100
    degree: str = ModelDegree.LINEAR.value
    maximize: bool = True
    eta_accept: float = 0.1
    eta_expand: float = 0.75
    gamma_dec: float = 0.5
    gamma_inc: float = 2.0
    gradient_tolerance: float = 1e-10
    oversample: int = 0
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.initial_radius <= 0:
            raise ValueError("initial_radius must be positive")
        if self.minimum_radius < 0:
            raise ValueError("minimum_radius must be non-negative")
        if self.max_radius < self.initial_radius:
            raise ValueError("max_radius must be >= initial_radius")
        if self.max_evaluations < 1:
            raise ValueError("max_evaluations must be at least 1")
        if not 0 < self.gamma_dec < 1:
            raise ValueError("gamma_dec must be in (0, 1)")
        if self.gamma_inc < 1:
            raise ValueError("gamma_inc must be >= 1")
        if not 0 <= self.eta_accept <= self.eta_expand:
            raise ValueError("expected 0 <= eta_accept <= eta_expand")
        ModelDegree(self.degree)


class TrustRegionSearch:
    """Trust-region control loop over a shared :class:`CaseHandler`.

    Parameters
    ----------
    base_case : Case
        Starting point. It is evaluated as the first model center if it has
        not been evaluated yet.
    case_handler : CaseHandler
        Queue the search pushes new cases into and reads results from.
    config : TrustRegionConfig | None
        Run settings.
    space : VariableSpace | None
        Bounds for every proposed case.
    """

    def __init__(
        self,
        base_case: Case,
        case_handler: CaseHandler,
        *,
        config: TrustRegionConfig | None = None,
        space: VariableSpace | None = None,
    ) -> None:
        self._cfg = config or TrustRegionConfig()
        self._handler = case_handler
        self._space = space or VariableSpace()
        if not self._space.contains(base_case):
            raise ValueError("base_case lies outside the variable bounds")

        self._radius = float(self._cfg.initial_radius)
        self._minimum_radius = float(self._cfg.minimum_radius)
        self._max_evaluations = int(self._cfg.max_evaluations)
        self._degree = ModelDegree(self._cfg.degree)
        self._sign = 1.0 if self._cfg.maximize else -1.0

        self._tentative_best = base_case
        self._state = SearchState.INITIALIZING
        self._iteration = 0
        self._model: PolyModel | None = None
        self._models_built = 0
        self._step_case: Case | None = None
        self._predicted_improvement = 0.0
        self._step_on_boundary = False
        self._accepted_steps = 0
        self._rejected_steps = 0
        self._error: str | None = None

    @property
    def config(self) -> TrustRegionConfig:
        return self._cfg

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def minimum_radius(self) -> float:
        return self._minimum_radius

    @property
    def iteration(self) -> int:
        return self._iteration

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def model(self) -> PolyModel | None:
        return self._model

    @property
    def accepted_steps(self) -> int:
        return self._accepted_steps

    @property
    def rejected_steps(self) -> int:
        return self._rejected_steps

    def tentative_best_case(self) -> Case:
        return self._tentative_best

    def scale_radius(self, k: float) -> None:
        """Multiply the radius by ``k``; ``k < 1`` shrinks, ``k >= 1`` keeps or grows."""
        if k <= 0:
            raise ValueError("radius scale factor must be positive")
        self._radius = k * self._radius

    def abort(self, message: str) -> None:
        """Record an unrecoverable error; the search reports ``ERROR`` from now on."""
        self._error = message
        self._state = SearchState.FINISHED

    @property
    def error(self) -> str | None:
        return self._error

    def is_finished(self) -> TerminationReason:
        if self._error is not None:
            return TerminationReason.ERROR
        if self._handler.nr_completed >= self._max_evaluations:
            return TerminationReason.MAX_EVALUATIONS_REACHED
        if self._radius < self._minimum_radius:
            return TerminationReason.MINIMUM_RADIUS_REACHED
        return TerminationReason.NOT_FINISHED

    def iterate(self) -> None:
        """Advance the control loop by one step."""
        if self.is_finished().is_terminal:
            self._state = SearchState.FINISHED
            self._handler.clear_recently_evaluated_cases()
            return

        for case in self._handler.recently_evaluated_cases():
            if case.state is EvalState.FAILED:
                _LOGGER.info("Sample %s failed (%s); the model will request a substitute", case.id, case.error)

        if self._state is SearchState.INITIALIZING:
            self._initialize_model()
        elif self._state in (SearchState.COMPLETING_MODEL, SearchState.MODEL_READY):
            self._complete_model()
        elif self._state is SearchState.STEPPING:
            self._finish_step()

        self._handler.clear_recently_evaluated_cases()
        self._iteration += 1

    def _initialize_model(self) -> None:
        center = self._tentative_best
        if center.state is EvalState.FAILED:
            self.abort(f"Center case {center.id} failed to evaluate: {center.error}")
            return
        seed = None if self._cfg.seed is None else self._cfg.seed + self._models_built
        self._model = PolyModel(
            center,
            self._radius,
            degree=self._degree,
            space=self._space,
            oversample=self._cfg.oversample,
            seed=seed,
        )
        self._models_built += 1
        _LOGGER.debug("Built model #%d at radius %.4g", self._models_built, self._radius)
        self._state = SearchState.COMPLETING_MODEL
        self._complete_model()

    def _complete_model(self) -> None:
        model = self._model
        if model is None:
            raise RuntimeError(f"No model to complete in state {self._state.value}")
        if model.center.state is EvalState.FAILED:
            self.abort(f"Center case {model.center.id} failed to evaluate: {model.center.error}")
            return
        try:
            if not model.is_model_ready():
                new_cases = model.complete_points()
                if new_cases:
                    self._handler.add_new_cases(new_cases)
                if not model.is_model_ready():
                    return
            self._state = SearchState.MODEL_READY
            model.calculate_model_coefficients()
        except ModelDegenerate as exc:
            _LOGGER.warning("Model degenerate at radius %.4g: %s; shrinking", self._radius, exc)
            self._shrink()
            return
        self._propose_step(model)

    def _cauchy_step(self, model: PolyModel) -> np.ndarray | None:
        # Minimize the negated (for maximization) model over the ball.
        g = -self._sign * model.gradient  # type: ignore[operator]
        H = -self._sign * model.hessian  # type: ignore[operator]
        g_norm = float(np.linalg.norm(g))
        if g_norm <= self._cfg.gradient_tolerance:
            return None
        gHg = float(g @ H @ g)
        tau = 1.0 if gHg <= 0 else min(g_norm**3 / (self._radius * gHg), 1.0)
        return -tau * (self._radius / g_norm) * g

    def _propose_step(self, model: PolyModel) -> None:
        step = self._cauchy_step(model)
        if step is None:
            _LOGGER.info("Model gradient vanished at radius %.4g; shrinking", self._radius)
            self._shrink()
            return

        center = model.center
        candidate = self._space.snap(Case.from_vector(center, center.vector() + step, CaseOrigin.MODEL_STEP))
        actual_step = candidate.vector() - center.vector()
        if not np.any(actual_step):
            _LOGGER.info("Step collapsed onto the center; shrinking")
            self._shrink()
            return

        predicted = self._sign * (model.predict(candidate) - model.predict(center))
        if predicted <= 0:
            _LOGGER.info("Model predicts no improvement (%.4g); shrinking", predicted)
            self._shrink()
            return

        self._handler.add_new_cases([candidate])
        self._step_case = candidate
        self._predicted_improvement = predicted
        self._step_on_boundary = float(np.linalg.norm(actual_step)) >= 0.99 * self._radius
        self._state = SearchState.STEPPING

    def _finish_step(self) -> None:
        step_case = self._step_case
        if step_case is None:
            raise RuntimeError("No pending step case while stepping")
        if step_case.state is EvalState.EVALUATED:
            center = self._tentative_best
            actual = self._sign * (step_case.objective - center.objective)  # type: ignore[operator]
            rho = actual / self._predicted_improvement
            if rho >= self._cfg.eta_accept:
                self._tentative_best = step_case
                self._accepted_steps += 1
                if rho >= self._cfg.eta_expand and self._step_on_boundary:
                    self.scale_radius(min(self._cfg.gamma_inc, self._cfg.max_radius / self._radius))
                _LOGGER.info(
                    "Accepted step to %s (rho=%.3f, objective=%.6g)", step_case.id, rho, step_case.objective
                )
            else:
                self._rejected_steps += 1
                self.scale_radius(self._cfg.gamma_dec)
                _LOGGER.info("Rejected step (rho=%.3f); radius now %.4g", rho, self._radius)
        elif step_case.state is EvalState.FAILED:
            self._rejected_steps += 1
            self.scale_radius(self._cfg.gamma_dec)
            _LOGGER.warning("Step case %s failed (%s); radius now %.4g", step_case.id, step_case.error, self._radius)
        else:
            return
        self._step_case = None
        self._model = None
        self._state = SearchState.INITIALIZING

    def _shrink(self) -> None:
        self.scale_radius(self._cfg.gamma_dec)
        self._model = None
        self._state = SearchState.INITIALIZING

    def status_header(self) -> str:
        return ",".join(
            [
                "Iteration",
                "EvaluatedCases",
                "QueuedCases",
                "RecentlyEvaluatedCases",
                "TentativeBestCaseID",
                "TentativeBestCaseOFValue",
                "StepLength",
            ]
        )

    def status_row(self) -> str:
        best = self._tentative_best
        return ",".join(
            str(v)
            for v in (
                self._iteration,
                self._handler.nr_evaluated,
                self._handler.nr_queued,
                self._handler.nr_recently_evaluated,
                best.id,
                best.objective,
                self._radius,
            )
        )
