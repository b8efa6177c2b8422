"""
Response Caches
===============

In-memory caches for expensive computations (generated text, embeddings,
similarity scores).

Components:
- TTLCache: bounded LRU cache with per-entry expiry and a background sweeper
- SemanticCache: TTLCache keyed by query fingerprint, searchable by embedding
- CacheRegistry: the named caches used by the service, with hit/miss tracking

Expiry is checked lazily on read; the sweeper removes entries that are never
read again. Sweeper timers are daemon threads and stop on close().

Example:
    >>> cache = TTLCache(max_size=2, default_ttl=60.0)
    >>> cache.set("a", 1)
    >>> cache.get("a")
    1
    >>> cache.close()
"""

import hashlib
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Sequence, Tuple

import structlog

from lfm.config.environments import EnvironmentConfig
from lfm.storage.vectors.similarity import cosine_similarity

log = structlog.get_logger()


class TTLCache:
    """
    Least-recently-used cache with per-entry time to live.

    Thread-safe: an RLock guards the entry map and the counters.

    Attributes:
        max_size: Maximum number of entries
        default_ttl: TTL in seconds used when set() gets none
        sweep_interval: Seconds between background sweeps
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: float = 300.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")

        self.max_size = max_size
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._closed = False

        self.hits = 0
        self.misses = 0
        self.expired_removed = 0
        self.evictions = 0

    def _expired(self, expiry: float) -> bool:
        return self._clock() > expiry

    def get(self, key: Hashable) -> Optional[Any]:
        """Value for key, or None if missing or expired. Marks key as recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, expiry = entry
            if self._expired(expiry):
                del self._entries[key]
                self.expired_removed += 1
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """Store value; at capacity the least-recently-used entry is evicted."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                log.debug("Cache eviction", cache=self.name, key=str(evicted))
            self._entries[key] = (value, self._clock() + ttl)

    def has(self, key: Hashable) -> bool:
        """Whether key holds a live entry. Does not touch recency."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._expired(entry[1]):
                del self._entries[key]
                self.expired_removed += 1
                return False
            return True

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, expiry) in self._entries.items() if now > expiry]
            for key in expired:
                del self._entries[key]
            self.expired_removed += len(expired)
        if expired:
            log.debug("Cache sweep", cache=self.name, removed=len(expired))
        return len(expired)

    def size(self) -> int:
        """Number of live entries (sweeps first)."""
        self.sweep()
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)

    def get_stats(self) -> Dict[str, Any]:
        size = self.size()
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "name": self.name,
                "size": size,
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": (self.hits / lookups) * 100 if lookups else 0.0,
                "expired_removed": self.expired_removed,
                "evictions": self.evictions,
                "utilization_percent": (size / self.max_size) * 100,
            }

    # ---- Background sweeper ----

    def start_sweeper(self) -> None:
        """Start periodic sweeping every sweep_interval seconds."""
        with self._lock:
            if self._closed or self._timer is not None:
                return
            self._schedule()
        log.debug("Cache sweeper started", cache=self.name, interval=self.sweep_interval)

    def _schedule(self) -> None:
        self._timer = threading.Timer(self.sweep_interval, self._run_sweep)
        self._timer.daemon = True
        self._timer.start()

    def _run_sweep(self) -> None:
        self.sweep()
        with self._lock:
            if not self._closed:
                self._schedule()

    @property
    def sweeper_running(self) -> bool:
        return self._timer is not None

    def close(self) -> None:
        """Stop the sweeper. The cache stays usable for reads and writes."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def __enter__(self) -> "TTLCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class SemanticHit:
    """Cached response found by embedding similarity."""
    response: Any
    similarity: float
    key: str


class SemanticCache:
    """
    Cache of responses searchable by query embedding.

    A lookup returns the cached response whose query embedding is most
    similar to the given one, provided the similarity reaches the threshold.
    Embeddings of another dimensionality or with zero norm are skipped.
    """

    def __init__(
        self,
        max_size: int = 200,
        default_ttl: float = 1800.0,
        similarity_threshold: float = 0.85,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.similarity_threshold = similarity_threshold
        self.cache = TTLCache(
            max_size=max_size,
            default_ttl=default_ttl,
            sweep_interval=sweep_interval,
            clock=clock,
            name="semantic",
        )
        self._embeddings: Dict[str, Tuple[float, ...]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def make_key(query: str) -> str:
        """Deterministic fingerprint of a query."""
        return "query_" + hashlib.sha256(query.encode("utf-8")).hexdigest()

    def set_with_embedding(
        self,
        key: str,
        response: Any,
        embedding: Sequence[float],
        ttl: Optional[float] = None,
    ) -> None:
        with self._lock:
            self.cache.set(key, response, ttl)
            self._embeddings[key] = tuple(float(x) for x in embedding)
            self._prune()

    def _prune(self) -> int:
        """Drop embeddings whose entry was evicted or expired. Caller holds the lock."""
        stale = [key for key in self._embeddings if not self.cache.has(key)]
        for key in stale:
            del self._embeddings[key]
        return len(stale)

    def sweep(self) -> int:
        """Sweep expired entries and their embeddings. Returns the entries removed."""
        removed = self.cache.sweep()
        with self._lock:
            self._prune()
        return removed

    def find_similar(self, query_embedding: Sequence[float]) -> Optional[SemanticHit]:
        """Most similar live cached response above the threshold, or None."""
        best: Optional[SemanticHit] = None
        with self._lock:
            self._prune()
            for key, embedding in list(self._embeddings.items()):
                if len(embedding) != len(query_embedding):
                    continue
                similarity = cosine_similarity(query_embedding, embedding)
                if math.isnan(similarity) or similarity < self.similarity_threshold:
                    continue
                if best is not None and similarity <= best.similarity:
                    continue
                response = self.cache.get(key)
                if response is None:
                    # Entry expired or evicted
                    del self._embeddings[key]
                    continue
                best = SemanticHit(response=response, similarity=similarity, key=key)
        return best

    def get_stats(self) -> Dict[str, Any]:
        stats = self.cache.get_stats()
        with self._lock:
            self._prune()
            stats["embeddings_count"] = len(self._embeddings)
        stats["cache_type"] = "semantic"
        return stats

    def start_sweeper(self) -> None:
        self.cache.start_sweeper()

    def close(self) -> None:
        self.cache.close()
        with self._lock:
            self._embeddings.clear()


class CacheRegistry:
    """
    Named caches used by the service.

    Sizes and TTLs come from the EnvironmentConfig.

    Example:
        >>> registry = CacheRegistry(get_environment_config(Environment.TEST))
        >>> registry.similarity.set("a|b", 87.5)
        >>> registry.get_performance()["hits"]
        0
        >>> registry.close()
    """

    def __init__(
        self,
        config: EnvironmentConfig,
        clock: Callable[[], float] = time.monotonic,
        start_sweepers: bool = False,
    ):
        self.config = config
        self.ai_response = TTLCache(
            config.ai_response_cache_size, config.ai_response_ttl, config.sweep_interval, clock, "ai_response"
        )
        self.embedding = TTLCache(
            config.embedding_cache_size, config.embedding_ttl, config.sweep_interval, clock, "embedding"
        )
        self.similarity = TTLCache(
            config.similarity_cache_size, config.similarity_ttl, config.sweep_interval, clock, "similarity"
        )
        self.semantic = SemanticCache(
            max_size=config.semantic_cache_size,
            default_ttl=config.semantic_ttl,
            sweep_interval=config.sweep_interval,
            clock=clock,
        )
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

        if start_sweepers:
            for cache in (self.ai_response, self.embedding, self.similarity, self.semantic):
                cache.start_sweeper()

        log.info("CacheRegistry initialized", environment=config.name, sweepers=start_sweepers)

    def track_access(self, hit: bool = True) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def get_performance(self) -> Dict[str, Any]:
        with self._lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "total": total,
            "hit_rate": (hits / total) * 100 if total else 0.0,
            "ai_response_cache": self.ai_response.get_stats(),
            "embedding_cache": self.embedding.get_stats(),
            "similarity_cache": self.similarity.get_stats(),
            "semantic_cache": self.semantic.get_stats(),
        }

    def close(self) -> None:
        """Stop every sweeper."""
        for cache in (self.ai_response, self.embedding, self.similarity, self.semantic):
            cache.close()
        log.info("CacheRegistry closed")
