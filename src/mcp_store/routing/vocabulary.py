"""Static term tables used for query expansion and tool matching."""

import re
from typing import Optional

# Query keyword -> related search terms.
SEMANTIC_MAP: dict[str, tuple[str, ...]] = {
    "bitcoin": ("btc", "crypto", "cryptocurrency"),
    "btc": ("bitcoin", "crypto"),
    "ethereum": ("eth", "crypto", "cryptocurrency"),
    "weather": ("forecast", "temperature", "climate"),
    "search": ("find", "query", "lookup"),
    "price": ("cost", "value", "rate", "quote"),
    "stock": ("equity", "shares", "market"),
    "translate": ("translation", "language"),
}

# Intent -> search terms added regardless of query wording.
INTENT_EXPANSIONS: dict[str, tuple[str, ...]] = {
    "cryptocurrency_price_query": ("crypto", "bitcoin", "price", "exchange"),
    "web_search": ("search", "web", "google"),
    "weather_query": ("weather", "forecast"),
    "stock_price_query": ("stock", "market", "ticker"),
    "food_delivery": ("food", "delivery", "restaurant"),
    "translation": ("translate", "translation", "language"),
}

# Intent -> words expected in the name or description of a fitting tool.
TOOL_PATTERNS: dict[str, tuple[str, ...]] = {
    "cryptocurrency_price_query": ("crypto", "price", "exchange", "rate"),
    "web_search": ("search", "query", "web"),
    "weather_query": ("weather", "forecast", "temperature"),
    "stock_price_query": ("stock", "quote", "market"),
    "food_delivery": ("food", "order", "delivery", "restaurant"),
    "translation": ("translate", "translation", "language"),
}

STOPWORDS = frozenset(
    {
        "a", "about", "an", "and", "are", "at", "can", "for", "from", "get",
        "how", "i", "in", "is", "it", "me", "much", "my", "of", "on", "please",
        "show", "the", "to", "today", "what", "whats", "when", "where", "with",
        "you",
    }
)

_TOKEN = re.compile(r"[a-z0-9][a-z0-9_\-]*")


def query_tokens(query: Optional[str], min_length: int = 3) -> list[str]:
    """Distinct lowercase tokens of a query, stopwords removed, in order."""
    tokens: list[str] = []
    for token in _TOKEN.findall((query or "").lower()):
        if len(token) >= min_length and token not in STOPWORDS and token not in tokens:
            tokens.append(token)
    return tokens


def semantic_expansions(query: Optional[str], intent: Optional[str], limit: int = 5) -> list[str]:
    """
    Related search terms for a query and intent.

    Keyword expansions come first (table order), then intent expansions;
    duplicates are dropped and the result is capped at ``limit`` terms.
    """
    lowered = (query or "").lower()
    expansions: list[str] = []
    for keyword, terms in SEMANTIC_MAP.items():
        if keyword in lowered:
            expansions.extend(t for t in terms if t not in expansions)
    for term in INTENT_EXPANSIONS.get(intent or "", ()):
        if term not in expansions:
            expansions.append(term)
    return expansions[:limit]


def tool_patterns(intent: Optional[str]) -> tuple[str, ...]:
    return TOOL_PATTERNS.get(intent or "", ())
