import copy
import uuid

import numpy as np
import pytest

from tropt.core.case import Case, CaseOrigin, EvalState
from tropt.errors import CaseStateError


class TestCaseLifecycle:
    """Forward-only evaluation state transitions."""

    def test_new_case_is_pending_without_objective(self):
        case = Case({"x": 1.0})
        assert case.state is EvalState.PENDING
        assert case.objective is None
        assert case.origin is CaseOrigin.INITIAL

    def test_pending_queued_evaluated(self):
        case = Case({"x": 1.0})
        case.mark_queued()
        case.mark_evaluated(4.5)
        assert case.state is EvalState.EVALUATED
        assert case.objective == 4.5
        assert case.is_evaluated

    def test_cannot_evaluate_before_queued(self):
        case = Case({"x": 1.0})
        with pytest.raises(CaseStateError):
            case.mark_evaluated(1.0)
        assert case.state is EvalState.PENDING

    def test_cannot_move_backwards(self):
        case = Case({"x": 1.0})
        case.mark_queued()
        case.mark_evaluated(1.0)
        with pytest.raises(CaseStateError):
            case.mark_queued()
        with pytest.raises(CaseStateError):
            case.mark_evaluated(2.0)
        assert case.objective == 1.0

    def test_failed_is_terminal_and_has_no_objective(self):
        case = Case({"x": 1.0})
        case.mark_queued()
        case.mark_failed("simulator crashed")
        assert case.state is EvalState.FAILED
        assert case.error == "simulator crashed"
        assert case.objective is None
        with pytest.raises(CaseStateError):
            case.mark_evaluated(1.0)

    def test_non_finite_objective_rejected(self):
        case = Case({"x": 1.0})
        case.mark_queued()
        with pytest.raises(ValueError):
            case.mark_evaluated(float("nan"))
        assert case.state is EvalState.QUEUED


class TestCaseVariables:
    def test_variables_are_read_only(self):
        case = Case({"x": 1.0}, {"n": 2})
        with pytest.raises(TypeError):
            case.real_variables["x"] = 5.0  # type: ignore[index]
        with pytest.raises(TypeError):
            case.integer_variables["n"] = 5  # type: ignore[index]

    def test_caller_dict_mutation_does_not_leak(self):
        values = {"x": 1.0}
        case = Case(values)
        values["x"] = 9.0
        assert case.real_variables["x"] == 1.0

    def test_overlapping_variable_kinds_rejected(self):
        with pytest.raises(ValueError):
            Case({"x": 1.0}, {"x": 1})

    def test_vector_orders_reals_then_integers(self):
        case = Case({"b": 2.0, "a": 1.0}, {"n": 3})
        assert case.variable_ids() == ["b", "a", "n"]
        np.testing.assert_array_equal(case.vector(), [2.0, 1.0, 3.0])

    def test_from_vector_rounds_integers(self):
        template = Case({"x": 0.0}, {"n": 0})
        case = Case.from_vector(template, np.array([0.25, 2.6]), CaseOrigin.MODEL_STEP)
        assert case.real_variables == {"x": 0.25}
        assert case.integer_variables == {"n": 3}
        assert case.origin is CaseOrigin.MODEL_STEP
        assert case.id != template.id

    def test_from_vector_length_mismatch(self):
        with pytest.raises(ValueError):
            Case.from_vector(Case({"x": 0.0}), np.array([1.0, 2.0]))


class TestCaseSerialization:
    def test_round_trip_preserves_identity_and_state(self):
        case = Case({"x": 1.0}, {"n": 2}, origin=CaseOrigin.REPLACEMENT)
        case.mark_queued()
        case.mark_evaluated(-3.0)
        restored = Case.from_dict(case.to_dict())
        assert restored.id == case.id
        assert restored.state is EvalState.EVALUATED
        assert restored.objective == -3.0
        assert restored.origin is CaseOrigin.REPLACEMENT

    def test_deepcopy_keeps_id(self):
        case = Case({"x": 1.0})
        clone = copy.deepcopy(case)
        assert clone.id == case.id
        assert clone is not case

    def test_explicit_id(self):
        case_id = uuid.uuid4()
        assert Case({"x": 0.0}, case_id=case_id).id == case_id

    def test_ids_are_unique(self):
        ids = {Case({"x": 0.0}).id for _ in range(100)}
        assert len(ids) == 100
