"""Deterministic cache keys for routing requests."""

import hashlib
import json
from typing import Iterable, Optional

from ..nlp.intents import normalize_query


def fingerprint(
    query: Optional[str],
    intent: Optional[str] = None,
    capabilities: Optional[Iterable[str]] = None,
    category: Optional[str] = None,
) -> str:
    """
    Compute the SHA256 cache key for a request.

    Fields are normalized before hashing (query whitespace/case, capabilities
    lowercased, deduplicated and sorted, empty strings treated as absent) so
    equivalent requests share one key.

    Returns:
        64-character hex digest
    """
    payload = {
        "intent": (intent or "").strip().lower() or None,
        "query": normalize_query(query),
        "capabilities": sorted({c.strip().lower() for c in capabilities or () if c.strip()}),
        "category": (category or "").strip().lower() or None,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
