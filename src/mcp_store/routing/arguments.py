"""Build tool arguments from a request and the tool's input schema."""

from typing import Any, Optional

from ..nlp.entities import EntitySet
from ..registry.models import ToolDescriptor

QUERY_PROPERTIES = frozenset({"query", "q", "text", "input", "prompt", "search", "question"})

# Schema property name -> entity kinds that can fill it, in preference order.
ENTITY_PROPERTIES: dict[str, tuple[str, ...]] = {
    "location": ("location",),
    "city": ("location",),
    "place": ("location",),
    "symbol": ("stock_symbol", "crypto_symbol"),
    "ticker": ("stock_symbol",),
    "stock_symbol": ("stock_symbol",),
    "coin": ("crypto_symbol",),
    "crypto_symbol": ("crypto_symbol",),
    "currency": ("currency",),
    "vs_currency": ("currency",),
    "language": ("language",),
    "target_language": ("language",),
    "target_lang": ("language",),
    "to": ("language",),
}


def _entity_for(prop: str, entities: EntitySet) -> Optional[str]:
    if prop in entities:
        return entities[prop]
    for kind in ENTITY_PROPERTIES.get(prop.lower(), ()):
        if kind in entities:
            return entities[kind]
    return None


def build_arguments(
    tool: ToolDescriptor,
    query: Optional[str],
    entities: EntitySet,
    params: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """
    Fill a tool's declared input properties.

    Each property takes, in order: an explicit param, a matching entity, or
    the query itself for query-like names. Explicit params not declared by
    the schema are still passed through. A tool without declared properties
    receives ``{"query", **entities, **params}``.
    """
    params = params or {}
    query = (query or "").strip()
    properties = tool.schema_properties()

    if not properties:
        arguments: dict[str, Any] = {"query": query} if query else {}
        arguments.update(entities)
        arguments.update(params)
        return arguments

    arguments = {}
    for prop in properties:
        if prop in params:
            arguments[prop] = params[prop]
            continue
        value = _entity_for(prop, entities)
        if value is not None:
            arguments[prop] = value
        elif query and prop.lower() in QUERY_PROPERTIES:
            arguments[prop] = query

    for name, value in params.items():
        arguments.setdefault(name, value)
    return arguments
