"""Polynomial surrogate built around a trust-region center.

A :class:`PolyModel` owns a fixed number of sample slots. The center occupies
the first slot; the others are displacements of the center by the trust
radius along coordinate directions (and, for quadratic models, negated and
pairwise-combined directions). The model is ready once every slot holds an
evaluated case and the slot geometry is well-poised; only then can
coefficients be fitted.

Slots whose case failed, or that make the set ill-conditioned once everything
is evaluated, are refilled with points in fresh random directions. The number
of refills is bounded; past the bound :class:`ModelDegenerate` is raised and
the caller is expected to shrink the radius and start over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.linalg import lstsq, qr

from tropt.core.case import Case, CaseOrigin, EvalState
from tropt.core.variables import VariableSpace
from tropt.engine.surrogate.basis import basis_size, polynomial_basis, unpack_coefficients
from tropt.engine.types import ModelDegree
from tropt.errors import ModelDegenerate, ModelNotReady

_LOGGER = logging.getLogger(__name__)

# Thresholds on the singular values of the scaled basis matrix.
MIN_SINGULAR_VALUE = 1e-8
MAX_CONDITION = 1e8


@dataclass(slots=True)
class _Slot:
    direction: np.ndarray
    case: Case | None = None
    requested: bool = False


class PolyModel:
    """Local polynomial model of the objective.

    Parameters
    ----------
    center : Case
        Trust-region center. A pending center is requested by the model like
        any other sample; an already submitted or evaluated center is reused.
    radius : float
        Trust radius; sample points lie at this distance from the center.
    degree : ModelDegree
        Linear (``d + 1`` samples) or quadratic (``(d + 1)(d + 2) / 2``).
    space : VariableSpace | None
        Bounds that sample points are snapped into.
    oversample : int
        Extra random-direction samples; the fit becomes a least-squares
        regression instead of an interpolation.
    max_replacements : int | None
        Refill budget; defaults to twice the number of samples.
    seed : int | None
        Seed for replacement directions.
    """

    def __init__(
        self,
        center: Case,
        radius: float,
        *,
        degree: ModelDegree = ModelDegree.LINEAR,
        space: VariableSpace | None = None,
        oversample: int = 0,
        max_replacements: int | None = None,
        seed: int | None = None,
    ) -> None:
        if radius <= 0:
            raise ValueError("radius must be positive")
        if oversample < 0:
            raise ValueError("oversample must be non-negative")

        self._center = center
        self._radius = float(radius)
        self._degree = ModelDegree(degree)
        self._center_vec = center.vector()
        self._n = self._center_vec.shape[0]
        if self._n == 0:
            raise ValueError("center case has no variables")

        n_int = len(center.integer_variables)
        self._integer_mask = np.zeros(self._n, dtype=bool)
        if n_int:
            self._integer_mask[self._n - n_int :] = True

        if space is not None:
            lower, upper = space.lower_upper(center)
            self._lower = np.asarray(lower, dtype=np.float64)
            self._upper = np.asarray(upper, dtype=np.float64)
        else:
            self._lower = np.full(self._n, -np.inf)
            self._upper = np.full(self._n, np.inf)

        self._rng = np.random.default_rng(seed)
        self._n_required = basis_size(self._n, self._degree) + oversample
        self._max_replacements = (
            2 * self._n_required if max_replacements is None else int(max_replacements)
        )
        self._replacements = 0

        self._slots = [
            _Slot(
                direction=np.zeros(self._n),
                case=center,
                requested=center.state is not EvalState.PENDING,
            )
        ]
        for direction in self._initial_directions():
            self._slots.append(_Slot(direction=direction))
        for _ in range(oversample):
            self._slots.append(_Slot(direction=self._random_direction()))

        self._constant: float | None = None
        self._gradient: np.ndarray | None = None
        self._hessian: np.ndarray | None = None

    @property
    def center(self) -> Case:
        return self._center

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def degree(self) -> ModelDegree:
        return self._degree

    @property
    def dimension(self) -> int:
        return self._n

    @property
    def required_points(self) -> int:
        """Total samples, center included, needed before fitting."""
        return self._n_required

    @property
    def replacements(self) -> int:
        return self._replacements

    @property
    def gradient(self) -> np.ndarray | None:
        return self._gradient

    @property
    def hessian(self) -> np.ndarray | None:
        return self._hessian

    @property
    def is_fitted(self) -> bool:
        return self._gradient is not None

    def sample_cases(self) -> list[Case]:
        return [slot.case for slot in self._slots if slot.case is not None]

    def _initial_directions(self) -> list[np.ndarray]:
        eye = np.eye(self._n)
        directions = [eye[i] for i in range(self._n)]
        if self._degree is ModelDegree.QUADRATIC:
            directions.extend(-eye[i] for i in range(self._n))
            for i in range(self._n):
                for j in range(i + 1, self._n):
                    directions.append((eye[i] + eye[j]) / np.sqrt(2.0))
        return directions

    def _random_direction(self) -> np.ndarray:
        v = self._rng.standard_normal(self._n)
        return v / max(np.linalg.norm(v), 1e-12)

    def _displace(self, step: np.ndarray) -> np.ndarray:
        x = self._center_vec + step
        if self._integer_mask.any():
            rounded = np.round(x)
            # An integer coordinate that should move must move by at least one unit.
            stuck = self._integer_mask & (step != 0) & (rounded == self._center_vec)
            rounded[stuck] = self._center_vec[stuck] + np.sign(step[stuck])
            x = np.where(self._integer_mask, rounded, x)
        return np.clip(x, self._lower, self._upper)

    def _point_for(self, direction: np.ndarray) -> np.ndarray:
        step = self._radius * direction
        x = self._displace(step)
        if np.allclose(x, self._center_vec):
            # Collapsed against a bound: mirror to the other side.
            x = self._displace(-step)
        return x

    def _fill(self, slot: _Slot, origin: CaseOrigin) -> Case:
        case = Case.from_vector(self._center, self._point_for(slot.direction), origin=origin)
        slot.case = case
        slot.requested = True
        return case

    def _replace(self, slot: _Slot, why: str) -> Case:
        if slot is self._slots[0]:
            raise ModelDegenerate(f"Model center {self._center.id} cannot be replaced ({why})")
        if self._replacements >= self._max_replacements:
            raise ModelDegenerate(
                f"Gave up after {self._replacements} replacement point(s); last cause: {why}"
            )
        self._replacements += 1
        slot.direction = self._random_direction()
        _LOGGER.debug("Replacing sample point (%s), replacement %d", why, self._replacements)
        return self._fill(slot, CaseOrigin.REPLACEMENT)

    def complete_points(self) -> list[Case]:
        """Return the new cases still needed to reach a well-poised sample set.

        Every returned case is pending and has not been returned before.
        """
        if self.is_model_ready():
            return []

        new_cases: list[Case] = []
        for slot in self._slots:
            if slot.case is None:
                new_cases.append(self._fill(slot, CaseOrigin.PERTURBATION))
            elif not slot.requested:
                slot.requested = True
                new_cases.append(slot.case)
            elif slot.case.state is EvalState.FAILED:
                new_cases.append(self._replace(slot, f"case {slot.case.id} failed"))

        if not new_cases and self._all_evaluated() and not self.is_well_poised():
            worst = self._least_useful_slot()
            new_cases.append(self._replace(worst, "sample set is not well-poised"))
        return new_cases

    def _all_evaluated(self) -> bool:
        return all(
            slot.case is not None and slot.case.state is EvalState.EVALUATED for slot in self._slots
        )

    def _scaled_points(self) -> np.ndarray:
        X = np.vstack([slot.case.vector() for slot in self._slots if slot.case is not None])
        return (X - self._center_vec[None, :]) / self._radius

    def _singular_values(self) -> np.ndarray | None:
        if any(slot.case is None for slot in self._slots):
            return None
        Phi = polynomial_basis(self._scaled_points(), self._degree)
        try:
            return np.linalg.svd(Phi, compute_uv=False)
        except np.linalg.LinAlgError:
            return None

    def is_well_poised(self) -> bool:
        """True if the sample geometry determines the coefficients stably."""
        s = self._singular_values()
        if s is None or s.size < basis_size(self._n, self._degree):
            return False
        return bool(s[-1] >= MIN_SINGULAR_VALUE and s[0] / s[-1] <= MAX_CONDITION)

    def _least_useful_slot(self) -> _Slot:
        # Pivoted QR on the transposed basis orders points by how much new
        # information each one adds; the last pivot contributes least.
        Phi = polynomial_basis(self._scaled_points(), self._degree)
        _, _, piv = qr(Phi.T, pivoting=True, mode="economic")
        for idx in reversed(piv.tolist()):
            if idx != 0:
                return self._slots[idx]
        return self._slots[-1]

    def is_model_ready(self) -> bool:
        """True iff every sample is evaluated and the set is well-poised."""
        return self._all_evaluated() and self.is_well_poised()

    def calculate_model_coefficients(self) -> None:
        """Fit the model to the evaluated samples.

        Interpolates when the sample count equals the number of coefficients
        and solves a least-squares problem when there are more samples.
        """
        if not self._all_evaluated():
            raise ModelNotReady("Not every sample point has been evaluated")
        if not self.is_well_poised():
            raise ModelDegenerate("Sample set is ill-conditioned; refusing to fit")

        Phi = polynomial_basis(self._scaled_points(), self._degree)
        f = np.asarray([slot.case.objective for slot in self._slots], dtype=np.float64)
        coef, _, rank, _ = lstsq(Phi, f)
        if rank < Phi.shape[1]:
            raise ModelDegenerate(f"Basis matrix is rank deficient ({rank} < {Phi.shape[1]})")

        constant, g_scaled, H_scaled = unpack_coefficients(coef, self._n, self._degree)
        self._constant = constant
        self._gradient = g_scaled / self._radius
        self._hessian = H_scaled / self._radius**2
        _LOGGER.debug(
            "Fitted %s model: |g|=%.3e radius=%.3e", self._degree.value,
            float(np.linalg.norm(self._gradient)), self._radius,
        )

    def predict(self, point: Case | np.ndarray) -> float:
        """Model value at ``point``. This is never a real evaluation."""
        if self._gradient is None or self._hessian is None or self._constant is None:
            raise ModelNotReady("Model coefficients have not been calculated")
        x = point.vector() if isinstance(point, Case) else np.asarray(point, dtype=np.float64)
        s = x - self._center_vec
        return float(self._constant + self._gradient @ s + 0.5 * s @ self._hessian @ s)
