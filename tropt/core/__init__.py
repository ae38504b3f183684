"""Core primitives.

Low-level, stable types used across the SDK: cases, the variable space they
live in, and result containers.
"""

from .case import Case, CaseOrigin, EvalState
from .results import OptimizationResults
from .variables import VariableSpace

__all__ = ["Case", "CaseOrigin", "EvalState", "OptimizationResults", "VariableSpace"]
