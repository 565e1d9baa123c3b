"""Fetch-or-generate: reuse a persisted result or call an expensive generator once."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
from storefront.proxy.cache import CacheStatus, SQLCacheStore
from storefront.utils.llm import run_db_operation_with_timeout

logger = logging.getLogger(__name__)

Generator = Callable[[Any], Awaitable[Dict[str, Any]]]


class CachePolicy(str, Enum):
    # completed -> hit, processing -> wait, failed -> regenerate
    REUSE = "reuse"
    # any existing row -> skipped, whatever its status
    SKIP_EXISTING = "skip_existing"


class ResolveStatus(str, Enum):
    HIT = "hit"
    GENERATED = "generated"
    PROCESSING = "processing"
    SKIPPED = "skipped"


@dataclass
class ResolveOutcome:
    key: str
    status: ResolveStatus
    result: Optional[Dict[str, Any]] = None

    @property
    def cached(self) -> bool:
        return self.status == ResolveStatus.HIT

    @property
    def ready(self) -> bool:
        return self.result is not None


class FetchOrGenerate:
    """
    Resolve a key against a cache store, invoking the generator only on a miss.

    The store's atomic claim is the only coordination between concurrent
    callers; nothing is shared in process memory.
    """

    def __init__(
        self,
        store: SQLCacheStore,
        generator: Generator,
        policy: CachePolicy = CachePolicy.REUSE,
    ):
        """
        Args:
            store: Cache store for this proxy variant
            generator: Async callable turning materialized inputs into a result dict
            policy: How existing rows are treated
        """
        self.store = store
        self.generator = generator
        self.policy = policy

    async def resolve(self, key: str, inputs: Any = None) -> ResolveOutcome:
        """
        Return the cached result for ``key`` or generate, persist and return it.

        Args:
            key: Identity of the input
            inputs: Materialized generator input (defaults to the key itself)

        Returns:
            ResolveOutcome describing what happened

        Raises:
            Exception: Whatever the generator raised, after the entry is marked failed
        """
        namespace = self.store.namespace
        entry = await run_db_operation_with_timeout(self.store.get, key)

        if entry is not None:
            if self.policy == CachePolicy.SKIP_EXISTING:
                logger.info("Skipping %s %s, entry exists (%s)", namespace, key, entry.status.value,
                            extra={"event": "proxy.skipped", "key": key})
                return ResolveOutcome(key, ResolveStatus.SKIPPED)
            if entry.status == CacheStatus.COMPLETED:
                logger.info("Cache hit for %s %s", namespace, key,
                            extra={"event": "proxy.cache_hit", "key": key})
                return ResolveOutcome(key, ResolveStatus.HIT, entry.result)
            if entry.status == CacheStatus.PROCESSING:
                logger.info("Already processing %s %s", namespace, key,
                            extra={"event": "proxy.in_flight", "key": key})
                return ResolveOutcome(key, ResolveStatus.PROCESSING)

        claimed = await run_db_operation_with_timeout(
            self.store.claim, key, reclaim_failed=self.policy == CachePolicy.REUSE
        )
        if not claimed:
            return await self._lost_claim(key)

        try:
            result = await self.generator(key if inputs is None else inputs)
        except Exception as e:
            logger.error("Generation failed for %s %s: %s", namespace, key, e,
                         extra={"event": "proxy.failed", "key": key})
            await run_db_operation_with_timeout(self.store.fail, key, str(e) or e.__class__.__name__)
            raise

        try:
            await run_db_operation_with_timeout(self.store.complete, key, result)
        except Exception as e:
            # A row left processing would block the key forever
            logger.error("Could not persist %s %s: %s", namespace, key, e,
                         extra={"event": "proxy.persist_failed", "key": key})
            await run_db_operation_with_timeout(self.store.fail, key, f"Result not persisted: {e}")
            raise
        logger.info("Generated %s %s", namespace, key, extra={"event": "proxy.generated", "key": key})
        return ResolveOutcome(key, ResolveStatus.GENERATED, result)

    async def _lost_claim(self, key: str) -> ResolveOutcome:
        """Another caller took the key between our read and our claim."""
        if self.policy == CachePolicy.SKIP_EXISTING:
            return ResolveOutcome(key, ResolveStatus.SKIPPED)
        entry = await run_db_operation_with_timeout(self.store.get, key)
        if entry is not None and entry.status == CacheStatus.COMPLETED:
            return ResolveOutcome(key, ResolveStatus.HIT, entry.result)
        return ResolveOutcome(key, ResolveStatus.PROCESSING)
