"""TrustRegionSearch driven synchronously, without a worker pool."""

import pytest

from tropt.core.case import Case, CaseOrigin
from tropt.core.variables import VariableSpace
from tropt.engine.case_handler import CaseHandler
from tropt.engine.strategies import search_from_name
from tropt.engine.strategies.trust_region import TrustRegionConfig, TrustRegionSearch
from tropt.engine.types import SearchState, TerminationReason
from tropt.objectives.analytic import Constant, Sphere


def _drive(search, handler, objective, drain, max_turns=10_000):
    for _ in range(max_turns):
        search.iterate()
        if search.state is SearchState.FINISHED:
            return search.is_finished()
        drain(handler, objective)
    raise AssertionError("search did not finish")


class TestTermination:
    """Budget and radius floor."""

    def test_minimum_radius_on_flat_objective(self, handler, drain):
        config = TrustRegionConfig(
            initial_radius=1.0, minimum_radius=0.01, max_evaluations=10, gamma_dec=0.5
        )
        search = TrustRegionSearch(Case({"x": 0.0}), handler, config=config)

        reason = _drive(search, handler, Constant().evaluate, drain)

        assert reason is TerminationReason.MINIMUM_RADIUS_REACHED
        assert handler.nr_evaluated == 8
        assert search.radius == 0.5**7

    def test_budget_reached(self, handler, drain):
        config = TrustRegionConfig(max_evaluations=12, minimum_radius=1e-12)
        search = TrustRegionSearch(Case({"x": 2.0, "y": -1.5}), handler, config=config)

        reason = _drive(search, handler, Sphere().evaluate, drain)

        assert reason is TerminationReason.MAX_EVALUATIONS_REACHED
        assert handler.nr_completed >= 12

    def test_budget_checked_before_radius(self, handler, drain):
        config = TrustRegionConfig(max_evaluations=2, minimum_radius=0.5)
        search = TrustRegionSearch(Case({"x": 0.0}), handler, config=config)
        search.iterate()
        drain(handler, Constant().evaluate)
        search.scale_radius(0.1)
        assert search.is_finished() is TerminationReason.MAX_EVALUATIONS_REACHED

    def test_nothing_queued_after_termination(self, handler, drain):
        config = TrustRegionConfig(minimum_radius=0.3, max_evaluations=50)
        search = TrustRegionSearch(Case({"x": 0.0}), handler, config=config)
        _drive(search, handler, Constant().evaluate, drain)

        known = len(handler.all_cases())
        for _ in range(3):
            search.iterate()
        assert len(handler.all_cases()) == known
        assert handler.nr_queued == 0
        assert search.state is SearchState.FINISHED


class TestConvergence:
    def test_sphere_maximization(self, handler, drain):
        config = TrustRegionConfig(max_evaluations=300, minimum_radius=1e-3, seed=7)
        search = TrustRegionSearch(Case({"x": 2.0, "y": -1.5}), handler, config=config)

        _drive(search, handler, Sphere().evaluate, drain)

        best = search.tentative_best_case()
        assert best.objective > -1e-2
        assert search.accepted_steps > 0

    def test_minimization(self, handler, drain):
        config = TrustRegionConfig(max_evaluations=300, maximize=False, seed=7)
        search = TrustRegionSearch(Case({"x": 1.5, "y": 1.0}), handler, config=config)

        _drive(search, handler, lambda c: -Sphere().evaluate(c), drain)

        assert search.tentative_best_case().objective < 1e-2

    def test_steps_stay_inside_bounds(self, handler, drain):
        space = VariableSpace(real_bounds={"x": (0.5, 3.0), "y": (-2.0, 2.0)})
        config = TrustRegionConfig(max_evaluations=60)
        search = TrustRegionSearch(Case({"x": 2.0, "y": 1.0}), handler, config=config, space=space)

        _drive(search, handler, Sphere().evaluate, drain)

        assert all(space.contains(c) for c in handler.all_cases())
        assert search.tentative_best_case().real_variables["x"] == pytest.approx(0.5)

    def test_tentative_best_never_gets_worse(self, handler, drain):
        config = TrustRegionConfig(max_evaluations=60)
        search = TrustRegionSearch(Case({"x": 2.0, "y": -1.5}), handler, config=config)
        seen = []
        for _ in range(200):
            search.iterate()
            if search.state is SearchState.FINISHED:
                break
            drain(handler, Sphere().evaluate)
            best = search.tentative_best_case()
            if best.objective is not None:
                seen.append(best.objective)
        assert seen == sorted(seen)


class TestFailures:
    def test_failed_step_shrinks_radius(self, handler, drain):
        search = TrustRegionSearch(Case({"x": 2.0}), handler)

        search.iterate()
        drain(handler, Sphere().evaluate)
        search.iterate()
        assert search.state is SearchState.STEPPING

        def crash_on_step(case):
            if case.origin is CaseOrigin.MODEL_STEP:
                raise RuntimeError("simulator crashed")
            return Sphere().evaluate(case)

        drain(handler, crash_on_step)
        search.iterate()
        assert search.radius == 0.5
        assert search.rejected_steps == 1
        assert search.state is SearchState.INITIALIZING
        assert search.tentative_best_case().real_variables["x"] == 2.0

    def test_failed_base_case_is_an_error(self, handler, drain):
        search = TrustRegionSearch(Case({"x": 0.0}), handler)

        def always_fail(case):
            raise RuntimeError("license server down")

        reason = _drive(search, handler, always_fail, drain)
        assert reason is TerminationReason.ERROR
        assert "license server down" in search.error

    def test_failed_sample_requests_replacement(self, handler, drain):
        base = Case({"x": 1.0, "y": 1.0})
        search = TrustRegionSearch(base, handler)
        search.iterate()
        failed_once = []

        def fail_first_sample(case):
            if case.id != base.id and not failed_once:
                failed_once.append(case.id)
                raise RuntimeError("diverged")
            return Sphere().evaluate(case)

        drain(handler, fail_first_sample)
        search.iterate()
        queued = handler.queued_cases()
        assert [c.origin for c in queued] == [CaseOrigin.REPLACEMENT]
        assert handler.nr_failed == 1

    def test_degenerate_geometry_shrinks_and_rebuilds(self, handler, drain):
        space = VariableSpace(real_bounds={"x": (0.0, 0.0), "y": (-1.0, 1.0)})
        config = TrustRegionConfig(minimum_radius=0.1)
        search = TrustRegionSearch(Case({"x": 0.0, "y": 0.0}), handler, config=config, space=space)

        radii = [search.radius]
        for _ in range(1000):
            search.iterate()
            if search.state is SearchState.FINISHED:
                break
            if search.radius != radii[-1]:
                assert search.state is SearchState.INITIALIZING
                assert search.model is None
                radii.append(search.radius)
            drain(handler, lambda c: c.real_variables["y"])

        assert radii == [1.0, 0.5, 0.25, 0.125, 0.0625]
        assert search.is_finished() is TerminationReason.MINIMUM_RADIUS_REACHED
        assert search.accepted_steps == 0
        assert search.rejected_steps == 0

    def test_stepping_without_step_case_is_rejected(self, handler):
        search = TrustRegionSearch(Case({"x": 0.0}), handler)
        search._state = SearchState.STEPPING
        with pytest.raises(RuntimeError):
            search.iterate()


class TestRadiusExpansion:
    def test_boundary_steps_expand_up_to_max_radius(self, handler, drain):
        config = TrustRegionConfig(initial_radius=1.0, max_radius=3.0, max_evaluations=12)
        search = TrustRegionSearch(Case({"x": 0.0}), handler, config=config)

        radii = [search.radius]
        for _ in range(200):
            search.iterate()
            if search.state is SearchState.FINISHED:
                break
            if search.radius != radii[-1]:
                radii.append(search.radius)
            drain(handler, lambda c: c.real_variables["x"])

        assert radii == [1.0, 2.0, 3.0]
        assert search.radius == 3.0
        assert search.accepted_steps >= 3
        assert search.rejected_steps == 0

    def test_interior_step_keeps_radius(self, handler, drain):
        config = TrustRegionConfig(degree="quadratic", max_evaluations=50, minimum_radius=1e-6)
        search = TrustRegionSearch(Case({"x": 0.0}), handler, config=config)

        def objective(case):
            return -((case.real_variables["x"] - 0.3) ** 2)

        search.iterate()
        drain(handler, objective)
        search.iterate()
        assert search.state is SearchState.STEPPING
        drain(handler, objective)
        search.iterate()

        assert search.accepted_steps == 1
        assert search.radius == 1.0
        assert search.tentative_best_case().real_variables["x"] == pytest.approx(0.3)


class TestControls:
    def test_scale_radius(self, handler):
        search = TrustRegionSearch(Case({"x": 0.0}), handler)
        search.scale_radius(0.5)
        assert search.radius == 0.5
        search.scale_radius(1.0)
        assert search.radius == 0.5
        search.scale_radius(3.0)
        assert search.radius == 1.5
        with pytest.raises(ValueError):
            search.scale_radius(0.0)

    def test_abort(self, handler):
        search = TrustRegionSearch(Case({"x": 0.0}), handler)
        search.abort("operator stop")
        assert search.is_finished() is TerminationReason.ERROR
        assert search.state is SearchState.FINISHED

    def test_status_lines(self, handler):
        search = TrustRegionSearch(Case({"x": 0.0}), handler)
        assert search.status_header() == (
            "Iteration,EvaluatedCases,QueuedCases,RecentlyEvaluatedCases,"
            "TentativeBestCaseID,TentativeBestCaseOFValue,StepLength"
        )
        assert len(search.status_row().split(",")) == 7

    def test_base_case_outside_bounds(self, handler):
        space = VariableSpace(real_bounds={"x": (0.0, 1.0)})
        with pytest.raises(ValueError):
            TrustRegionSearch(Case({"x": 2.0}), handler, space=space)

    @pytest.mark.parametrize(
        "params",
        [
            {"initial_radius": 0.0},
            {"max_evaluations": 0},
            {"gamma_dec": 1.0},
            {"gamma_inc": 0.5},
            {"eta_accept": 0.9, "eta_expand": 0.5},
            {"degree": "cubic"},
            {"initial_radius": 2.0, "max_radius": 1.0},
        ],
    )
    def test_config_validation(self, params):
        with pytest.raises(ValueError):
            TrustRegionConfig(**params)

    def test_registry(self):
        handler = CaseHandler()
        search = search_from_name("Trust-Region", Case({"x": 0.0}), handler, initial_radius=0.25)
        assert isinstance(search, TrustRegionSearch)
        assert search.radius == 0.25
        with pytest.raises(KeyError):
            search_from_name("nelder-mead", Case({"x": 0.0}), handler)
