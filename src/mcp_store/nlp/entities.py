"""Entity extraction from natural-language queries."""

import re
from typing import Callable, Optional

EntitySet = dict[str, str]

LANGUAGES = {
    "arabic",
    "chinese",
    "dutch",
    "english",
    "french",
    "german",
    "greek",
    "hindi",
    "italian",
    "japanese",
    "korean",
    "polish",
    "portuguese",
    "russian",
    "spanish",
    "swedish",
    "turkish",
}

CRYPTO_TICKERS = {
    "bitcoin": "BTC",
    "btc": "BTC",
    "ethereum": "ETH",
    "eth": "ETH",
    "dogecoin": "DOGE",
    "doge": "DOGE",
    "litecoin": "LTC",
    "ltc": "LTC",
    "solana": "SOL",
    "cardano": "ADA",
    "ripple": "XRP",
    "xrp": "XRP",
}

CURRENCY_CODES = {"USD", "EUR", "GBP", "JPY", "CNY", "INR", "CAD", "AUD", "CHF", "KRW"}
CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP", "¥": "JPY", "₹": "INR"}

# Uppercase words that look like tickers but are not.
_NOT_TICKERS = (
    set(CURRENCY_CODES)
    | set(CRYPTO_TICKERS.values())
    | {"I", "A", "AM", "PM", "OK", "US", "UK", "EU", "USA", "API", "CEO", "ETF", "IPO"}
)

_LOCATION_CAPITALIZED = re.compile(
    r"\b(?:in|at|near)\s+([A-Z][\w'\-]*(?:\s+[A-Z][\w'\-]*)*)"
)
_LOCATION_TRAILING = re.compile(
    r"\b(?:in|at|near)\s+([a-z][a-z'\-]+(?:\s+[a-z][a-z'\-]+)?)\s*[?.!]*\s*$"
)
_CRYPTO = re.compile(
    r"\b(" + "|".join(sorted(CRYPTO_TICKERS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_DOLLAR_TICKER = re.compile(r"\$([A-Z]{1,5})\b")
_TICKER = re.compile(r"\b([A-Z]{2,5})\b")
_CURRENCY_CODE = re.compile(r"\b(" + "|".join(sorted(CURRENCY_CODES)) + r")\b", re.IGNORECASE)
_LANGUAGE = re.compile(
    r"\b(?:to|into|in|from)\s+(" + "|".join(sorted(LANGUAGES)) + r")\b",
    re.IGNORECASE,
)


def extract_location(query: str) -> Optional[str]:
    for pattern in (_LOCATION_CAPITALIZED, _LOCATION_TRAILING):
        for match in pattern.finditer(query):
            value = match.group(1).strip()
            if value.lower() not in LANGUAGES and value.upper() not in CURRENCY_CODES:
                return value
    return None


def extract_crypto_symbol(query: str) -> Optional[str]:
    match = _CRYPTO.search(query)
    return CRYPTO_TICKERS[match.group(1).lower()] if match else None


def extract_stock_symbol(query: str) -> Optional[str]:
    match = _DOLLAR_TICKER.search(query)
    if match and match.group(1) not in _NOT_TICKERS:
        return match.group(1)
    for match in _TICKER.finditer(query):
        if match.group(1) not in _NOT_TICKERS:
            return match.group(1)
    return None


def extract_currency(query: str) -> Optional[str]:
    match = _CURRENCY_CODE.search(query)
    if match:
        return match.group(1).upper()
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in query:
            return code
    return None


def extract_language(query: str) -> Optional[str]:
    match = _LANGUAGE.search(query)
    return match.group(1).capitalize() if match else None


EXTRACTORS: dict[str, Callable[[str], Optional[str]]] = {
    "location": extract_location,
    "crypto_symbol": extract_crypto_symbol,
    "stock_symbol": extract_stock_symbol,
    "currency": extract_currency,
    "language": extract_language,
}


def extract_entities(query: Optional[str]) -> EntitySet:
    """
    Extract named values from a query.

    Each extractor runs independently on the original-case query and the
    first match per kind wins. Kinds with no match are omitted.

    Example:
        >>> extract_entities("weather in Tokyo")
        {'location': 'Tokyo'}
    """
    if not query or not query.strip():
        return {}
    text = query.strip()
    entities: EntitySet = {}
    for kind, extractor in EXTRACTORS.items():
        value = extractor(text)
        if value:
            entities[kind] = value
    return entities
