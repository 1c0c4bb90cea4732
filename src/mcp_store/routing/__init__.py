"""Candidate retrieval, ranking and the routing engine."""
from .arguments import build_arguments
from .engine import RoutingEngine
from .models import Alternative, Candidate, RetrievalContext, RouteRequest, RoutingDecision
from .ranking import RankingWeights, Selector, rank, score_candidate, select_tool
from .retrieval import (
    BroadStrategy,
    CandidateRetriever,
    ExpandedStrategy,
    NarrowStrategy,
    RetrievalStrategy,
)

__all__ = [
    "Alternative",
    "BroadStrategy",
    "Candidate",
    "CandidateRetriever",
    "ExpandedStrategy",
    "NarrowStrategy",
    "RankingWeights",
    "RetrievalContext",
    "RetrievalStrategy",
    "RouteRequest",
    "RoutingDecision",
    "RoutingEngine",
    "Selector",
    "build_arguments",
    "rank",
    "score_candidate",
    "select_tool",
]
