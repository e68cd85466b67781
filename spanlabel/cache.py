"""In-process result cache for validated label results.

An LRU map bounded by entry count; each entry carries its own expiry and
is dropped when read after it (no background sweep needed).  Keys are
``span:<16-hex text hash>:<8-hex policy hash>`` so every entry for one
source text can be invalidated through the text-hash prefix.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from .models import LabelResult, ValidationPolicy

logger = logging.getLogger(__name__)

CACHE_KEY_VERSION = "4"
KEY_NAMESPACE = "span"


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def _text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def _policy_payload(policy: ValidationPolicy | dict[str, Any] | None) -> dict[str, Any]:
    if policy is None:
        return {}
    if isinstance(policy, ValidationPolicy):
        return policy.model_dump(mode="json")
    return dict(policy)


def generate_cache_key(
    text: str,
    policy: ValidationPolicy | dict[str, Any] | None = None,
    template_version: str | None = None,
    provider: str | None = None,
) -> str:
    """Deterministic key for one ``(text, policy, version, provider)`` tuple."""
    policy_string = json.dumps(
        {
            "v": CACHE_KEY_VERSION,
            "policy": _policy_payload(policy),
            "templateVersion": template_version or "v1",
            "provider": provider or "unknown",
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    policy_hash = hashlib.sha256(policy_string.encode("utf-8")).hexdigest()[:8]
    return f"{KEY_NAMESPACE}:{_text_hash(text)}:{policy_hash}"


def cache_key_prefix(text: str) -> str:
    """Prefix shared by every key for *text*, regardless of policy."""
    return f"{KEY_NAMESPACE}:{_text_hash(text)}:"


def cache_key_pattern(text: str) -> str:
    """Glob pattern matching every key for *text*."""
    return cache_key_prefix(text) + "*"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry:
    key: str
    data: LabelResult
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """Bounded LRU of ``LabelResult`` with per-entry TTL.

    Args:
        max_entries: Entry bound; the least recently *accessed* entry goes first.
        default_ttl_s: TTL for ordinary results.
        short_ttl_s: TTL for empty or adversarial results.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        max_entries: int = 100,
        default_ttl_s: float = 3600,
        short_ttl_s: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.default_ttl_s = default_ttl_s
        self.short_ttl_s = short_ttl_s
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "evictions": 0, "expired": 0}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def ttl_for(self, result: LabelResult) -> float:
        if result.is_adversarial or not result.spans:
            return self.short_ttl_s
        return self.default_ttl_s

    def get(self, key: str) -> LabelResult | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                self._stats["expired"] += 1
                self._stats["misses"] += 1
                return None
            self._entries.move_to_end(key)
            self._stats["hits"] += 1
            return entry.data

    def set(self, key: str, value: LabelResult, ttl_s: float | None = None) -> None:
        ttl = self.ttl_for(value) if ttl_s is None else ttl_s
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock() + ttl)
            self._entries.move_to_end(key)
            self._stats["sets"] += 1
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug("Evicted cache entry %s", evicted)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup_expired(self) -> int:
        """Drop every expired entry and return how many went."""
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.expired(now)]
            for key in stale:
                del self._entries[key]
            self._stats["expired"] += len(stale)
        if stale:
            logger.debug("Cleaned up %d expired cache entries", len(stale))
        return len(stale)

    def invalidate(self, text: str) -> int:
        """Drop every entry for *text*, whatever policy produced it."""
        prefix = cache_key_prefix(text)
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        logger.debug("Invalidated %d cache entries for prefix %s", len(doomed), prefix)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._stats["hits"] + self._stats["misses"]
            return {
                **self._stats,
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hit_rate": round(self._stats["hits"] / lookups, 4) if lookups else 0.0,
            }
