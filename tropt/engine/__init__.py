"""Optimization engine (surfaces)."""

from .case_handler import CaseHandler
from .engine import Engine, EngineConfig, EngineResults, IterationStats
from .executors import LocalTransport, Overseer, TransportConfig, TransportFactory, WorkerStatus
from .interfaces import Evaluator, Search, Transport
from .strategies import TrustRegionConfig, TrustRegionSearch, search_from_name
from .surrogate import PolyModel
from .types import ModelDegree, SearchState, TerminationReason

__all__ = [
    "CaseHandler",
    "Engine",
    "EngineConfig",
    "EngineResults",
    "Evaluator",
    "IterationStats",
    "LocalTransport",
    "ModelDegree",
    "Overseer",
    "PolyModel",
    "Search",
    "SearchState",
    "TerminationReason",
    "Transport",
    "TransportConfig",
    "TransportFactory",
    "TrustRegionConfig",
    "TrustRegionSearch",
    "WorkerStatus",
    "search_from_name",
]
