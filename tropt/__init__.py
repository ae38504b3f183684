"""tropt public interface (surfaces only).

Use the engine surface under ``tropt.engine``. Cases and variable spaces live
under ``tropt.core``; analytic objectives under ``tropt.objectives``.
"""

from __future__ import annotations

from .core import Case, VariableSpace

__all__ = [
    "Case",
    "VariableSpace",
]

__version__ = "0.1.0"
