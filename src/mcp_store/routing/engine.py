"""
Routing engine: cache check, classify, retrieve, select, invoke, cache store.

One RoutingEngine instance owns its cache and protocol client (and with it
the session table); nothing in the routing path is module-level state, so
independent engines can run side by side.
"""

import copy
import time
from typing import Any, Optional

from loguru import logger

from ..cache import MemoryCache, RouteCache, fingerprint
from ..config import Config
from ..errors import InvocationError, NoCandidateServer, RoutingError
from ..nlp import (
    classify,
    classify_category,
    execution_mode,
    extract_entities,
    map_capabilities,
    structured_intent,
)
from ..registry import RegistryClient
from ..protocol import EnvCredentialResolver, ProtocolClient
from .arguments import build_arguments
from .models import RetrievalContext, RouteRequest, RoutingDecision
from .ranking import RankingWeights, Selector
from .retrieval import CandidateRetriever, RetrievalStrategy


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)


class RoutingEngine:
    """
    Routes one request to a tool server and returns a response body.

    ``route`` never raises for request-scoped failures: they become
    ``{"success": False, "status", "error", "error_type", ...}`` bodies.
    Only successful responses are cached.
    """

    def __init__(
        self,
        registry: RegistryClient,
        cache: Optional[RouteCache] = None,
        protocol: Optional[ProtocolClient] = None,
        strategies: Optional[list[RetrievalStrategy]] = None,
        weights: Optional[RankingWeights] = None,
        cascade_window: Optional[int] = None,
    ):
        self.registry = registry
        self.cache = cache or MemoryCache(Config.CACHE_TTL_SECONDS)
        self.protocol = protocol or ProtocolClient(credentials=EnvCredentialResolver())
        self.retriever = CandidateRetriever(registry, strategies)
        self.selector = Selector(weights=weights, cascade_window=cascade_window)

    async def close(self) -> None:
        await self.protocol.close()
        await self.cache.close()

    async def route(self, request: RouteRequest) -> dict[str, Any]:
        """
        Handle one routing request end to end.

        Returns:
            Success body with ``result`` and ``metadata``, or a failure body
        """
        start = time.perf_counter()
        key = fingerprint(request.query, request.intent, request.capabilities, request.category)

        try:
            lookup = await self.cache.get(key)
            if lookup.found:
                response = copy.deepcopy(lookup.value)
                metadata = response.setdefault("metadata", {})
                metadata["cached"] = True
                metadata["cache_age_ms"] = round((lookup.age or 0.0) * 1000.0, 2)
                metadata["cache_hits"] = lookup.hit_count
                metadata["total_time_ms"] = _elapsed_ms(start)
                logger.info(f"Cache hit for {key[:12]} (hits={lookup.hit_count})")
                return response

            response = await self._route_uncached(request, start)
            await self.cache.put(key, copy.deepcopy(response))
            return response

        except RoutingError as e:
            logger.warning(f"Routing failed ({e.error_type}): {e.message}")
            body = e.to_dict()
            body["total_time_ms"] = _elapsed_ms(start)
            return body
        except Exception as e:
            logger.exception(f"Unexpected routing error: {e}")
            return {
                "success": False,
                "status": 500,
                "error": str(e) or "Internal routing error",
                "error_type": type(e).__name__,
                "total_time_ms": _elapsed_ms(start),
            }

    async def _route_uncached(self, request: RouteRequest, start: float) -> dict[str, Any]:
        intent = structured_intent(request.intent) if request.intent else classify(request.query)
        entities = extract_entities(request.query)
        capabilities = list(request.capabilities) or map_capabilities(intent.name, default=())
        category = request.category or classify_category(intent.name, default=None)
        mode = execution_mode(intent.name)

        logger.info(
            f"Routing query={request.query!r} intent={intent.name} "
            f"({intent.confidence:.2f}) category={category} mode={mode}"
        )

        context = RetrievalContext(
            query=request.query,
            intent=intent.name,
            capabilities=tuple(capabilities),
            category=category,
            require_verified=request.require_verified,
        )
        candidates = await self.retriever.retrieve(context)
        if not candidates:
            raise NoCandidateServer(intent=intent.name, category=category)

        decision = self.selector.select(
            candidates, intent.name, entities, category, capabilities, request.query
        )
        routing_time_ms = _elapsed_ms(start)

        metadata = {
            "server": decision.server.display_name,
            "server_id": decision.server.id,
            "tool": decision.tool.name,
            "confidence": round(decision.confidence, 4),
            "alternatives": [alt.to_dict() for alt in decision.alternatives],
            "routing_time_ms": routing_time_ms,
            "strategy": decision.strategy,
            "execution": mode,
            "category": category,
            "intent": intent.to_dict(),
            "entities": dict(entities),
            "candidates_evaluated": decision.candidates_evaluated,
            "cached": False,
        }

        if mode == "present_options":
            result = {"options": self._options(decision)}
        else:
            arguments = build_arguments(decision.tool, request.query, entities, request.params)
            result = await self._invoke(decision, arguments)

        metadata["total_time_ms"] = _elapsed_ms(start)
        return {"success": True, "result": result, "metadata": metadata}

    async def _invoke(self, decision: RoutingDecision, arguments: dict[str, Any]) -> Any:
        try:
            return await self.protocol.call_tool(decision.server, decision.tool.name, arguments)
        except InvocationError as e:
            e.details.update(
                server=decision.server.display_name,
                server_id=decision.server.id,
                tool=decision.tool.name,
            )
            raise

    @staticmethod
    def _options(decision: RoutingDecision) -> list[dict[str, Any]]:
        options = [
            {
                **decision.server.to_summary(),
                "tool": decision.tool.name,
                "confidence": round(decision.confidence, 4),
            }
        ]
        for alt in decision.alternatives:
            options.append({**alt.server.to_summary(), "confidence": round(alt.confidence, 4)})
        return options
