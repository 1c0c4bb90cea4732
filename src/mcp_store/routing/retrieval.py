"""
Concurrent candidate retrieval.

Each RetrievalStrategy queries the registry its own way. CandidateRetriever
runs all strategies concurrently with a settle-all join: every strategy is
awaited to completion, a failing strategy is logged and skipped, and the
survivors are merged by strategy priority (list order), never by which
finished first.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from loguru import logger

from ..config import Config
from ..errors import RetrievalFailure
from ..registry import DiscoveryFilter, RegistryClient, ServerDescriptor
from .models import Candidate, RetrievalContext
from .vocabulary import query_tokens, semantic_expansions


def _active(servers: list[ServerDescriptor]) -> list[ServerDescriptor]:
    return [server for server in servers if server.is_active]


def _by_use_count(servers: list[ServerDescriptor], limit: int) -> list[ServerDescriptor]:
    return sorted(servers, key=lambda s: s.use_count, reverse=True)[:limit]


def _text_contains(text: str, terms: Sequence[str]) -> bool:
    return any(term in text for term in terms)


class RetrievalStrategy(ABC):
    """Base class for one way of finding candidate servers."""

    name: str = "strategy"
    source_bonus: float = 0.0

    def __init__(self, limit: int):
        if limit <= 0:
            raise ValueError(f"{type(self).__name__} limit must be > 0, got {limit}")
        self.limit = limit

    @abstractmethod
    async def retrieve(
        self, registry: RegistryClient, context: RetrievalContext
    ) -> list[ServerDescriptor]:
        """Return at most ``limit`` servers, best first."""


class NarrowStrategy(RetrievalStrategy):
    """
    Precise match: requested category, first requested capability, and the
    whole query appearing in the server's name or description.
    """

    name = "narrow"
    source_bonus = 10.0

    def __init__(self, limit: Optional[int] = None):
        super().__init__(limit or Config.NARROW_LIMIT)

    async def retrieve(self, registry, context):
        if context.category:
            servers = await registry.discover(DiscoveryFilter(category=context.category))
        else:
            servers = await registry.get_all_servers()
        servers = _active(servers)

        capability = context.capabilities[0].lower() if context.capabilities else None
        query = context.lowered_query

        matches = []
        for server in servers:
            if capability:
                server_caps = {c.lower() for c in server.capabilities}
                if capability not in server_caps and capability not in server.tools_text():
                    continue
            if query and not _text_contains(
                f"{server.display_name}\n{server.description}".lower(), [query]
            ):
                continue
            matches.append(server)
        return _by_use_count(matches, self.limit)


class ExpandedStrategy(RetrievalStrategy):
    """
    Recall-oriented match: any of the query, its tokens, the requested
    capabilities or the intent's synonym expansions appearing in the
    server's name, description or tools.
    """

    name = "expanded"
    source_bonus = 15.0

    def __init__(self, limit: Optional[int] = None, max_expansions: Optional[int] = None):
        super().__init__(limit or Config.EXPANDED_LIMIT)
        self.max_expansions = max_expansions or Config.MAX_EXPANSION_TERMS

    def search_terms(self, context: RetrievalContext) -> list[str]:
        terms: list[str] = []
        candidates = [
            context.lowered_query,
            *query_tokens(context.query),
            *(c.lower() for c in context.capabilities),
            *semantic_expansions(context.query, context.intent, self.max_expansions),
        ]
        for term in candidates:
            if term and term not in terms:
                terms.append(term)
        return terms

    async def retrieve(self, registry, context):
        terms = self.search_terms(context)
        if not terms:
            return []

        if context.category or context.require_verified:
            servers = await registry.discover(
                DiscoveryFilter(
                    category=context.category,
                    verified=True if context.require_verified else None,
                )
            )
        else:
            servers = await registry.get_all_servers()
        servers = _active(servers)

        matches = [
            server
            for server in servers
            if _text_contains(
                f"{server.display_name}\n{server.description}".lower(), terms
            )
            or _text_contains(server.tools_text(), terms)
        ]
        return _by_use_count(matches, self.limit)


class BroadStrategy(RetrievalStrategy):
    """
    Fallback match over tools, tags and description only, preferring
    verified servers, then popular ones.
    """

    name = "broad"
    source_bonus = 5.0

    def __init__(self, limit: Optional[int] = None):
        super().__init__(limit or Config.BROAD_LIMIT)

    async def retrieve(self, registry, context):
        terms = [t for t in [context.lowered_query, *(c.lower() for c in context.capabilities)] if t]
        if not terms:
            return []

        servers = await registry.get_all_servers()
        servers = _active(servers)
        matches = [
            server
            for server in servers
            if _text_contains(server.tools_text(), terms)
            or _text_contains(" ".join(server.tags).lower(), terms)
            or _text_contains(server.description.lower(), terms)
        ]
        matches.sort(key=lambda s: (s.verified, s.use_count), reverse=True)
        return matches[: self.limit]


def default_strategies() -> list[RetrievalStrategy]:
    return [NarrowStrategy(), ExpandedStrategy(), BroadStrategy()]


class CandidateRetriever:
    """
    Runs retrieval strategies concurrently and merges their results.

    Merge rules:
    - Union by server id, first occurrence wins
    - Inactive and deprecated servers are dropped
    - Strategy priority order (the order of ``strategies``)
    - Within a strategy, the strategy's own order
    """

    def __init__(self, registry: RegistryClient, strategies: Optional[list[RetrievalStrategy]] = None):
        self.registry = registry
        self.strategies = strategies if strategies is not None else default_strategies()
        if not self.strategies:
            raise ValueError("CandidateRetriever needs at least one strategy")

    async def retrieve(self, context: RetrievalContext) -> list[Candidate]:
        """
        Collect candidates from every strategy.

        Returns:
            Merged candidates; may be empty if every strategy found nothing

        Raises:
            RetrievalFailure: If every strategy raised
        """
        results = await asyncio.gather(
            *(strategy.retrieve(self.registry, context) for strategy in self.strategies),
            return_exceptions=True,
        )

        candidates: list[Candidate] = []
        seen: set[str] = set()
        failures: dict[str, str] = {}

        for strategy, result in zip(self.strategies, results):
            if isinstance(result, Exception):
                logger.warning(f"Retrieval strategy '{strategy.name}' failed: {result}")
                failures[strategy.name] = str(result)
                continue
            if isinstance(result, BaseException):
                raise result
            for server in result:
                if server.id in seen:
                    continue
                if not server.is_active:
                    logger.debug(f"Skipping {server.status.value} server {server.id}")
                    continue
                seen.add(server.id)
                candidates.append(
                    Candidate(
                        server=server,
                        source=strategy.name,
                        source_bonus=strategy.source_bonus,
                        order=len(candidates),
                    )
                )

        if len(failures) == len(self.strategies):
            raise RetrievalFailure(
                "All candidate retrieval strategies failed",
                strategy_errors=failures,
            )

        logger.debug(
            f"Retrieved {len(candidates)} candidate(s) "
            f"({len(failures)} of {len(self.strategies)} strategies failed)"
        )
        return candidates
