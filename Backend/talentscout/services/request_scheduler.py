"""
Request Scheduler

Rate-limited, cache-aware queue in front of the external profile-lookup and
candidate-scoring services. Requests are dispatched in FIFO order, at most
`max_concurrent` at a time, with a fixed pacing delay between dequeues.
Responses are cached by an identity key for `cache_ttl` seconds; a live cache
entry is returned without touching the queue.

Enrichment never raises: an upstream failure yields a degraded profile.
Scoring failures propagate, since a score is required for the pipeline.
"""

import asyncio
import hashlib
import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

from talentscout.core.errors import CandidateScoringError, PipelineValidationError, UpstreamDegraded
from talentscout.core.models import (
    CandidateAnalysis,
    CandidateRecord,
    EnrichedProfile,
    ProfileIdentity,
    ScoringWeights,
)

logger = logging.getLogger(__name__)


def identity_key(kind: str, name: Optional[str], email: Optional[str] = None,
                 company: Optional[str] = None, skills: Sequence[str] = (),
                 weights: Optional[ScoringWeights] = None) -> str:
    """Normalized digest of the attributes that determine a response."""
    payload = {
        "kind": kind,
        "name": (name or "").strip().lower(),
        "email": (email or "").strip().lower(),
        "company": (company or "").strip().lower(),
        "skills": sorted(s.strip().lower() for s in skills),
        "weights": weights.model_dump() if weights is not None else None,
    }
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class EnrichmentRequest:
    identity: ProfileIdentity

    def cache_key(self) -> str:
        return identity_key("profile", self.identity.name, self.identity.email, self.identity.company)


@dataclass(frozen=True)
class ScoringRequest:
    candidate: CandidateRecord
    weights: ScoringWeights
    profile: Optional[EnrichedProfile] = None
    job_description: str = ""

    def cache_key(self) -> str:
        c = self.candidate
        return identity_key("analysis", c.name, c.email, c.company, c.skills, self.weights)


@dataclass(frozen=True)
class BatchScoringRequest:
    requests: Tuple[ScoringRequest, ...]

    def cache_key(self) -> None:
        # combined responses are never cached as a whole
        return None


@dataclass
class CacheEntry:
    response: Any
    inserted_at: float


class ResponseCache:
    """Mutex-protected TTL map. Expiry is checked lazily on read."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.inserted_at < self.ttl:
                self.hits += 1
                return entry.response
            if entry is not None:
                del self._entries[key]
            self.misses += 1
            return None

    def put(self, key: str, response: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(response=response, inserted_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "keys": list(self._entries.keys()),
                "hits": self.hits,
                "misses": self.misses,
                "ttlSeconds": self.ttl,
            }


@dataclass
class _QueuedRequest:
    request: Any
    future: asyncio.Future = field(repr=False)


class RequestScheduler:
    """
    Explicitly constructed scheduler shared by every job of a pipeline.

    `profile_lookup` must expose `async lookup(identity) -> EnrichedProfile`
    and `scorer` must expose `async score(request) -> dict` and
    `async score_batch(requests) -> Any`.
    """

    def __init__(self, profile_lookup, scorer, *, max_concurrent: int = 3,
                 rate_limit_delay: float = 0.1, cache_ttl: float = 300,
                 clock: Callable[[], float] = time.monotonic):
        if max_concurrent < 1:
            raise PipelineValidationError("max_concurrent must be at least 1")
        self.profile_lookup = profile_lookup
        self.scorer = scorer
        self.max_concurrent = max_concurrent
        self.rate_limit_delay = rate_limit_delay
        self.cache = ResponseCache(cache_ttl, clock)

        self._queue: Deque[_QueuedRequest] = deque()
        self._active = 0
        self._dispatched = 0
        self._dispatcher: Optional[asyncio.Task] = None
        self._slot_released: Optional[asyncio.Event] = None
        self._inflight: set = set()

    # ------------------------------------------------------------------ state

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def dispatched_count(self) -> int:
        """Number of requests that actually reached an upstream service."""
        return self._dispatched

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Request cache cleared")

    def update_rate_limit(self, delay: float, max_concurrent: int) -> None:
        if delay < 0:
            raise PipelineValidationError("Rate limit delay cannot be negative")
        if max_concurrent < 1:
            raise PipelineValidationError("max_concurrent must be at least 1")
        self.rate_limit_delay = delay
        self.max_concurrent = max_concurrent
        if self._slot_released is not None:
            self._slot_released.set()
        logger.info("Rate limit updated: delay=%ss max_concurrent=%d", delay, max_concurrent)

    # --------------------------------------------------------------- requests

    def submit(self, request) -> asyncio.Future:
        """
        Queue a request and return a future for its response. A live cache
        entry resolves the future immediately without queueing anything.
        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        key = request.cache_key()
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", type(request).__name__)
                future.set_result(cached)
                return future

        self._queue.append(_QueuedRequest(request=request, future=future))
        self._ensure_dispatcher(loop)
        return future

    async def enrich_profile(self, identity: ProfileIdentity) -> EnrichedProfile:
        return await self.submit(EnrichmentRequest(identity=identity))

    async def score_candidate(self, request: ScoringRequest) -> CandidateAnalysis:
        return await self.submit(request)

    async def score_batch(self, requests: Sequence[ScoringRequest]) -> List[CandidateAnalysis]:
        """
        Score N candidates with one combined call. A malformed combined
        response, or a failed combined call, falls back to N sequential
        single-candidate calls through the cached path.

        Offered to callers that already hold a group of candidates. The
        enrichment loop does not use it: candidates of a job are scored one
        at a time so a single failure stays isolated to its candidate.
        """
        requests = list(requests)
        if not requests:
            return []
        if len(requests) == 1:
            return [await self.score_candidate(requests[0])]

        try:
            raw = await self.submit(BatchScoringRequest(requests=tuple(requests)))
            analyses = self._parse_batch(raw, len(requests))
        except Exception:
            logger.exception("Batch scoring of %d candidates failed, falling back to individual scoring",
                             len(requests))
            analyses = None

        if analyses is None:
            analyses = []
            for request in requests:
                analyses.append(await self.score_candidate(request))
        return analyses

    @staticmethod
    def _parse_batch(raw: Any, expected: int) -> Optional[List[CandidateAnalysis]]:
        items = raw.get("candidates") if isinstance(raw, dict) else raw
        if not isinstance(items, list) or len(items) != expected:
            logger.warning("Malformed batch scoring response, falling back to individual scoring")
            return None
        if not all(isinstance(item, dict) for item in items):
            logger.warning("Batch scoring response contained non-object entries, falling back")
            return None
        return [CandidateAnalysis.from_raw(item) for item in items]

    async def close(self) -> None:
        """Stop the dispatcher and cancel anything still waiting in the queue."""
        while self._queue:
            queued = self._queue.popleft()
            if not queued.future.done():
                queued.future.cancel()
        if self._dispatcher is not None and not self._dispatcher.done():
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
        self._dispatcher = None

    # ------------------------------------------------------------- internals

    def _ensure_dispatcher(self, loop: asyncio.AbstractEventLoop) -> None:
        if (self._dispatcher is not None and not self._dispatcher.done()
                and self._dispatcher.get_loop() is loop):
            return
        self._slot_released = asyncio.Event()
        self._dispatcher = loop.create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        while self._queue:
            if self._active >= self.max_concurrent:
                self._slot_released.clear()
                await self._slot_released.wait()
                continue

            queued = self._queue.popleft()
            if queued.future.done():
                # caller gave up while waiting
                continue

            self._active += 1
            self._dispatched += 1
            task = asyncio.create_task(self._run(queued))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

            await asyncio.sleep(self.rate_limit_delay)

    async def _run(self, queued: _QueuedRequest) -> None:
        try:
            result = await self._execute(queued.request)
        except Exception as e:
            if not queued.future.done():
                queued.future.set_exception(e)
        else:
            if not queued.future.done():
                queued.future.set_result(result)
        finally:
            self._active -= 1
            if self._slot_released is not None:
                self._slot_released.set()

    async def _execute(self, request) -> Any:
        if isinstance(request, EnrichmentRequest):
            return await self._execute_enrichment(request)
        if isinstance(request, ScoringRequest):
            return await self._execute_scoring(request)
        if isinstance(request, BatchScoringRequest):
            return await self.scorer.score_batch(list(request.requests))
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    async def _execute_enrichment(self, request: EnrichmentRequest) -> EnrichedProfile:
        identity = request.identity
        try:
            profile = await self.profile_lookup.lookup(identity)
        except UpstreamDegraded as e:
            logger.warning("Profile lookup degraded for %s: %s", identity.name, e)
            return EnrichedProfile.degraded_for(identity)
        except Exception:
            logger.exception("Profile lookup failed unexpectedly for %s", identity.name)
            return EnrichedProfile.degraded_for(identity)

        if not isinstance(profile, EnrichedProfile):
            logger.warning("Profile lookup returned %s for %s", type(profile).__name__, identity.name)
            return EnrichedProfile.degraded_for(identity)

        self.cache.put(request.cache_key(), profile)
        return profile

    async def _execute_scoring(self, request: ScoringRequest) -> CandidateAnalysis:
        raw = await self.scorer.score(request)
        try:
            analysis = CandidateAnalysis.from_raw(raw)
        except TypeError as e:
            raise CandidateScoringError(f"Unusable scoring response for {request.candidate.name}: {e}") from e
        self.cache.put(request.cache_key(), analysis)
        return analysis
