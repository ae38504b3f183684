"""Local surrogate models."""

from .basis import basis_size, polynomial_basis
from .poly_model import PolyModel

__all__ = ["PolyModel", "basis_size", "polynomial_basis"]
