"""Intent classification and entity extraction."""
from .entities import EntitySet, extract_entities
from .intents import (
    GENERAL_INTENT,
    Intent,
    classify,
    classify_category,
    execution_mode,
    map_capabilities,
    normalize_query,
    structured_intent,
    supported_intents,
)

__all__ = [
    "GENERAL_INTENT",
    "EntitySet",
    "Intent",
    "classify",
    "classify_category",
    "execution_mode",
    "extract_entities",
    "map_capabilities",
    "normalize_query",
    "structured_intent",
    "supported_intents",
]
