"""Search registry surface.

Provides a small factory to obtain a search by name.
"""

from __future__ import annotations

from typing import Any, Final

from tropt.core.case import Case
from tropt.core.variables import VariableSpace
from tropt.engine.case_handler import CaseHandler
from tropt.engine.interfaces import Search
from tropt.engine.strategies.trust_region import TrustRegionConfig, TrustRegionSearch

_REGISTRY: Final[dict[str, tuple[type, type]]] = {
    "trust-region": (TrustRegionSearch, TrustRegionConfig),
}


def search_from_name(
    name: str,
    base_case: Case,
    case_handler: CaseHandler,
    *,
    space: VariableSpace | None = None,
    **params: Any,
) -> Search:
    """Return a configured search from the registry.

    Raises KeyError for unknown searches.

    Parameters
    ----------
    name : str
        Search name: "trust-region".
    **params : Any
        Config fields (e.g., initial_radius, minimum_radius, max_evaluations)
    """
    key = name.lower()
    if key not in _REGISTRY:
        raise KeyError(f"Unknown search: {name}. Available: {list(_REGISTRY.keys())}")
    search_cls, config_cls = _REGISTRY[key]
    return search_cls(base_case, case_handler, config=config_cls(**params), space=space)


__all__ = [
    "search_from_name",
    "TrustRegionConfig",
    "TrustRegionSearch",
]
