"""
Candidate scoring, tool selection and the fallback cascade.

Score of one candidate:

    source_bonus
    + verified                       (20 if verified)
    + 3 * log10(use_count + 1)
    + name contains query            (25)
    + description contains query     (15)
    + category equals requested      (20)
    + 10 * capabilities found in tool names/descriptions

Scoring is pure and never raises. ``Selector.select`` raises only the
request-scoped NoCandidateServer / NoUsableTool errors.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger

from ..config import Config
from ..errors import NoCandidateServer, NoUsableTool
from ..nlp.entities import EntitySet
from ..registry.models import ServerDescriptor, ToolDescriptor
from .models import Alternative, Candidate, RoutingDecision, ScoredCandidate
from .vocabulary import tool_patterns

DIRECT_STRATEGY = "parallel-hybrid"
CASCADE_STRATEGY = "cascade"


@dataclass(frozen=True)
class RankingWeights:
    """Weights of each scoring signal."""

    verified: float = 20.0
    use_count_log: float = 3.0
    name_contains_query: float = 25.0
    description_contains_query: float = 15.0
    category_match: float = 20.0
    capability_in_tools: float = 10.0
    tool_name_match: float = 10.0
    tool_description_match: float = 5.0


DEFAULT_WEIGHTS = RankingWeights()


def score_candidate(
    candidate: Candidate,
    query: Optional[str],
    category: Optional[str],
    capabilities: Sequence[str],
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> float:
    server = candidate.server
    score = candidate.source_bonus

    if server.verified:
        score += weights.verified
    score += weights.use_count_log * math.log10(server.use_count + 1)

    lowered_query = (query or "").lower().strip()
    if lowered_query:
        if lowered_query in server.display_name.lower():
            score += weights.name_contains_query
        if lowered_query in server.description.lower():
            score += weights.description_contains_query

    if category and server.category.lower() == category.lower():
        score += weights.category_match

    tools_text = server.tools_text()
    matched = sum(1 for cap in capabilities if cap and cap.lower() in tools_text)
    score += weights.capability_in_tools * matched
    return score


def rank(
    candidates: Sequence[Candidate],
    query: Optional[str],
    category: Optional[str],
    capabilities: Sequence[str],
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> list[ScoredCandidate]:
    """Order candidates by score, then use_count, then discovery order."""
    scored = [
        ScoredCandidate(c, score_candidate(c, query, category, capabilities, weights))
        for c in candidates
    ]
    scored.sort(key=lambda s: (-s.score, -s.server.use_count, s.candidate.order))
    return scored


def select_tool(
    server: ServerDescriptor,
    intent: Optional[str],
    capabilities: Sequence[str],
    query: Optional[str],
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> Optional[ToolDescriptor]:
    """
    Pick the server tool that best fits the request.

    Each pattern (intent keywords, capabilities, the lowercased query) adds
    10 when it appears in a tool name and 5 when it appears in the tool
    description. The highest score wins, earliest tool on ties; if every tool
    scores 0 the first declared tool is used.

    Returns:
        The chosen tool, or None if the server declares no tools
    """
    if not server.tools:
        return None

    patterns: list[str] = []
    for pattern in [*tool_patterns(intent), *capabilities, (query or "").strip()]:
        lowered = pattern.lower()
        if lowered and lowered not in patterns:
            patterns.append(lowered)

    best_tool = None
    best_score = 0.0
    for tool in server.tools:
        name = tool.name.lower()
        description = tool.description.lower()
        score = 0.0
        for pattern in patterns:
            if pattern in name:
                score += weights.tool_name_match
            if pattern in description:
                score += weights.tool_description_match
        if score > best_score:
            best_score = score
            best_tool = tool

    return best_tool or server.tools[0]


class Selector:
    """Ranks candidates and walks the cascade window until a tool is found."""

    def __init__(
        self,
        weights: Optional[RankingWeights] = None,
        cascade_window: Optional[int] = None,
        max_alternatives: Optional[int] = None,
    ):
        self.weights = weights or DEFAULT_WEIGHTS
        self.cascade_window = cascade_window or Config.CASCADE_WINDOW
        self.max_alternatives = (
            max_alternatives if max_alternatives is not None else Config.MAX_ALTERNATIVES
        )

    def select(
        self,
        candidates: Sequence[Candidate],
        intent: Optional[str],
        entities: EntitySet,
        category: Optional[str],
        capabilities: Sequence[str],
        query: Optional[str] = None,
    ) -> RoutingDecision:
        """
        Choose a server and tool.

        Raises:
            NoCandidateServer: If candidates is empty
            NoUsableTool: If no candidate within the cascade window has a tool
        """
        if not candidates:
            raise NoCandidateServer()

        ranked = rank(candidates, query, category, capabilities, self.weights)

        for index, scored in enumerate(ranked[: self.cascade_window]):
            tool = select_tool(scored.server, intent, capabilities, query, self.weights)
            if tool is None:
                logger.debug(f"Server {scored.server.id} declares no tools, trying next candidate")
                continue

            runners_up = ranked[index + 1 : index + 1 + self.max_alternatives]
            return RoutingDecision(
                server=scored.server,
                tool=tool,
                confidence=scored.confidence,
                score=scored.score,
                strategy=DIRECT_STRATEGY if index == 0 else CASCADE_STRATEGY,
                alternatives=tuple(Alternative(r.server, r.confidence) for r in runners_up),
                candidates_evaluated=len(ranked),
            )

        raise NoUsableTool(
            available_servers=[s.server.display_name for s in ranked[: self.cascade_window]],
        )
