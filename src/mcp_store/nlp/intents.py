"""
Rule-based intent classification.

An ordered table of ``IntentRule`` entries is scanned against the
lowercased, trimmed query:

1. The first rule with a matching regex pattern wins at its base confidence.
2. Otherwise the first rule with a matching keyword wins at
   ``max(0.6, base_confidence - 0.2)``.
3. Otherwise the generic ``general_query`` intent is returned at 0.3.

Classification never raises; an unrecognized query is a valid, low
confidence result rather than an error.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

GENERAL_INTENT = "general_query"
GENERAL_CONFIDENCE = 0.3
KEYWORD_CONFIDENCE_FLOOR = 0.6
KEYWORD_CONFIDENCE_PENALTY = 0.2


@dataclass(frozen=True)
class Intent:
    """Symbolic label for the purpose of a request."""

    name: str
    confidence: float
    matched_evidence: str  # pattern source, "keyword:<kw>", "structured" or "fallback"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "confidence": self.confidence,
            "matched_evidence": self.matched_evidence,
        }


@dataclass(frozen=True)
class IntentRule:
    """One row of the classification table."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    base_confidence: float
    keywords: tuple[str, ...]

    @property
    def keyword_confidence(self) -> float:
        return max(KEYWORD_CONFIDENCE_FLOOR, self.base_confidence - KEYWORD_CONFIDENCE_PENALTY)


def _rule(name: str, patterns: list[str], confidence: float, keywords: list[str]) -> IntentRule:
    return IntentRule(
        name=name,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        base_confidence=confidence,
        keywords=tuple(keywords),
    )


_CRYPTO = r"\b(?:bitcoin|btc|ethereum|eth|dogecoin|doge|crypto\w*)\b"

# Table order is significant: earlier rules win.
INTENT_RULES: tuple[IntentRule, ...] = (
    _rule(
        "weather_query",
        [
            r"\bweather\s+in\s+([a-z\s]+)",
            r"\bforecast\b.*?([a-z\s]+)",
            r"\btemperature\b.*?([a-z\s]+)",
            r"\b(current|today'?s?)\s+weather\b",
            r"\bhow\b.*?\b(hot|cold|warm)\b.*?\bis\b.*?\bit\b",
        ],
        0.95,
        ["weather", "forecast", "temperature", "humidity", "sunny", "snowing"],
    ),
    _rule(
        "cryptocurrency_price_query",
        [
            _CRYPTO + r".*?\bprice",
            r"\bprice\b.*?" + _CRYPTO,
            r"\bhow\b.*?\bmuch\b.*?" + _CRYPTO,
            _CRYPTO + r".*?\b(cost|value|worth)\b",
        ],
        0.95,
        ["bitcoin", "btc", "ethereum", "dogecoin", "crypto", "cryptocurrency"],
    ),
    _rule(
        "stock_price_query",
        [
            r"\bstock\b.*?\bprice\b.*?\b([a-z]{2,5})\b",
            r"\b([a-z]{2,5})\b.*?\bstock\b.*?\bprice\b",
            r"\bshare\b.*?\bprice\b.*?\b([a-z]{2,5})\b",
        ],
        0.90,
        ["stock", "stocks", "shares", "ticker", "nasdaq", "nyse"],
    ),
    _rule(
        "web_search",
        [
            r"\bsearch\b.*?\bfor\s+(.+)",
            r"\bfind\b.*?\babout\s+(.+)",
            r"\blook\b.*?\bup\s+(.+)",
            r"\bgoogle\s+(.+)",
        ],
        0.85,
        ["search", "google", "look up", "lookup"],
    ),
    _rule(
        "food_delivery",
        [
            r"\border\b.*?\bfood\b",
            r"\bfood\b.*?\bdelivery\b",
            r"\b(pizza|burger|chinese|indian|sushi)\b.*?\b(order|delivery)\b",
            r"\bhungry\b.*?\b(order|delivery)\b",
        ],
        0.90,
        ["pizza", "restaurant", "takeout", "takeaway", "hungry", "delivery"],
    ),
    _rule(
        "translation",
        [
            r"\btranslate\b.*?\b(?:to|into)\s+([a-z]+)",
            r"\bhow\b.*?\bsay\b.*?\bin\s+([a-z]+)",
            r"\b([a-z]+)\b.*?\btranslation\b",
        ],
        0.95,
        ["translate", "translation", "translator"],
    ),
)

_RULES_BY_NAME = {rule.name: rule for rule in INTENT_RULES}

_KEYWORD_PATTERNS: dict[str, re.Pattern[str]] = {
    keyword: re.compile(r"\b" + re.escape(keyword) + r"\b")
    for rule in INTENT_RULES
    for keyword in rule.keywords
}


def normalize_query(query: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace."""
    if not query:
        return ""
    return " ".join(query.lower().split())


def classify(query: Optional[str]) -> Intent:
    """
    Classify a query into an Intent.

    Args:
        query: Raw natural-language query (may be empty or None)

    Returns:
        Intent with confidence in [0, 1]; ``general_query`` when nothing matches
    """
    normalized = normalize_query(query)
    if not normalized:
        return Intent(GENERAL_INTENT, GENERAL_CONFIDENCE, "fallback")

    for rule in INTENT_RULES:
        for pattern in rule.patterns:
            if pattern.search(normalized):
                return Intent(rule.name, rule.base_confidence, pattern.pattern)

    for rule in INTENT_RULES:
        for keyword in rule.keywords:
            if _KEYWORD_PATTERNS[keyword].search(normalized):
                return Intent(rule.name, rule.keyword_confidence, f"keyword:{keyword}")

    return Intent(GENERAL_INTENT, GENERAL_CONFIDENCE, "fallback")


def structured_intent(name: str) -> Intent:
    """Intent supplied explicitly by the caller; trusted at full confidence."""
    return Intent(name.strip(), 1.0, "structured")


def base_confidence(intent_name: str) -> Optional[float]:
    """Declared base confidence of a supported intent, or None."""
    rule = _RULES_BY_NAME.get(intent_name)
    return rule.base_confidence if rule else None


def supported_intents() -> list[str]:
    return [rule.name for rule in INTENT_RULES]


# ============================================================================
# Intent -> routing hints
# ============================================================================

CAPABILITY_MAP: dict[str, list[str]] = {
    "weather_query": ["weather_lookup", "location_search"],
    "cryptocurrency_price_query": ["crypto_price", "market_data"],
    "stock_price_query": ["stock_price", "market_data"],
    "web_search": ["web_search", "content_retrieval"],
    "food_delivery": ["food_ordering", "delivery_search", "location_search"],
    "translation": ["text_translation", "language_detection"],
}

CATEGORY_MAP: dict[str, str] = {
    "weather_query": "Weather",
    "cryptocurrency_price_query": "Finance",
    "stock_price_query": "Finance",
    "web_search": "Search",
    "food_delivery": "Commerce",
    "translation": "Language",
}

DIRECT_EXECUTION_INTENTS = frozenset(
    {
        "weather_query",
        "cryptocurrency_price_query",
        "stock_price_query",
        "translation",
        "web_search",
    }
)

PRESENT_OPTIONS_INTENTS = frozenset(
    {"food_delivery", "flight_booking", "hotel_booking", "crypto_trading"}
)


def map_capabilities(intent_name: str, default: Sequence[str] = ("general",)) -> list[str]:
    """Default capabilities requested for an intent."""
    return list(CAPABILITY_MAP.get(intent_name, default))


def classify_category(intent_name: str, default: Optional[str] = "General") -> Optional[str]:
    """Default server category for an intent."""
    return CATEGORY_MAP.get(intent_name, default)


def execution_mode(intent_name: str) -> str:
    """
    Decide how a routed request is fulfilled.

    Returns:
        "direct_execution" to invoke the best server immediately,
        "present_options" to return ranked choices without invoking,
        "fallback" for general processing (still invokes)
    """
    if intent_name in DIRECT_EXECUTION_INTENTS:
        return "direct_execution"
    if intent_name in PRESENT_OPTIONS_INTENTS:
        return "present_options"
    return "fallback"
