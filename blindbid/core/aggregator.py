"""
Batch Aggregator - fetch many auctions through a rate-limited endpoint.

Conceptual Background:
---------------------
Public RPC endpoints throttle clients that fire dozens of calls at once.
Batching is client-side admission control: batches run one after
another with a sleep in between, while the addresses inside one batch
are fetched concurrently. At any instant at most ``plan.size`` fetches
are in flight.

Algorithm:
---------
1. Serve fresh ended snapshots from the cache; fetch only the rest.
2. Pick the initial plan from the number of addresses to fetch:
   small sets get larger batches and shorter delays.
3. Between batches, sleep for the plan delay, doubled once the
   cumulative failure count passes ``delay_doubling_errors``.
4. While cumulative failures are past ``degrade_errors``, shrink the
   batch by one (floor 1) after every batch and lengthen the delay.
   Remaining addresses are re-partitioned under the new plan.
5. Each address has its own retry loop in ``AuctionReader``; a failed
   address costs one failure and never aborts its siblings.
6. Newly fetched ended auctions are written to the cache, best effort.

Cancellation is checked before every batch and before every retry
sleep. Fetches already in flight are allowed to finish.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from blindbid.core.auction.models import Auction
from blindbid.core.chain.reader import AuctionReader, ReadOutcome, Sleep
from blindbid.core.config import ClientConfig
from blindbid.core.storage.ended_cache import EndedAuctionCache
from blindbid.crypto import normalize_address
from blindbid.utils.logger import get_logger

logger = get_logger("aggregator")


# =============================================================================
# Batch Planning
# =============================================================================


@dataclass(frozen=True)
class BatchPlan:
    """Batch size and inter-batch delay (seconds)."""
    size: int
    delay: float


@dataclass(frozen=True)
class BatchPolicy:
    """Thresholds that drive the batch plan."""
    small_set_threshold: int = 10
    large_set_threshold: int = 20
    delay_doubling_errors: int = 3
    degrade_errors: int = 6
    degrade_delay_step: float = 1.0

    @classmethod
    def from_config(cls, config: ClientConfig) -> "BatchPolicy":
        return cls(
            small_set_threshold=config.small_set_threshold,
            large_set_threshold=config.large_set_threshold,
            delay_doubling_errors=config.delay_doubling_errors,
            degrade_errors=config.degrade_errors,
            degrade_delay_step=config.degrade_delay_step_seconds,
        )

    def initial_plan(self, count: int) -> BatchPlan:
        """Batch size shrinks as the set grows."""
        if count > self.large_set_threshold:
            return BatchPlan(size=2, delay=3.0)
        if count <= self.small_set_threshold:
            return BatchPlan(size=5, delay=1.5)
        return BatchPlan(size=3, delay=2.0)

    def wait_before_batch(self, plan: BatchPlan, error_count: int) -> float:
        if error_count > self.delay_doubling_errors:
            return plan.delay * 2
        return plan.delay


def next_batch_plan(
    plan: BatchPlan,
    remaining: int,
    error_count: int,
    policy: BatchPolicy,
) -> BatchPlan:
    """
    Plan for the next batch.

    Degrades by one step after every batch while the cumulative error
    count is past the policy threshold. Batch size never drops below one.

    Args:
        plan: Current plan
        remaining: Addresses still to fetch
        error_count: Cumulative failures so far
        policy: Thresholds
    """
    if remaining == 0:
        return plan
    if error_count > policy.degrade_errors and plan.size > 1:
        degraded = BatchPlan(size=plan.size - 1, delay=plan.delay + policy.degrade_delay_step)
        logger.warning(
            f"{error_count} failures so far; batch size {plan.size} -> {degraded.size}, "
            f"delay {plan.delay:g}s -> {degraded.delay:g}s"
        )
        return degraded
    return plan


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a fetch."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# =============================================================================
# Result
# =============================================================================


@dataclass
class FetchResult:
    """
    Outcome of :meth:`BatchAggregator.fetch_all`.

    ``auctions`` follows the order of the requested addresses, with
    failed and skipped addresses left out.
    """
    auctions: List[Auction] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    cache_hits: int = 0
    fetched: int = 0
    retried: int = 0  # addresses that needed more than one attempt
    cancelled: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def complete(self) -> bool:
        return not self.failed and not self.skipped

    def summary(self) -> str:
        parts = [f"{len(self.auctions)} auctions ({self.cache_hits} cached, {self.fetched} fetched)"]
        if self.failed:
            parts.append(f"{len(self.failed)} items failed")
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped after cancellation")
        return ", ".join(parts)


# =============================================================================
# Aggregator
# =============================================================================


class BatchAggregator:
    """
    Fetches many auctions with cache short-circuiting and adaptive batching.

    Stateless between calls apart from the cache it writes to.
    """

    def __init__(
        self,
        reader: AuctionReader,
        cache: Optional[EndedAuctionCache] = None,
        policy: Optional[BatchPolicy] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.reader = reader
        self.cache = cache
        self.policy = policy or BatchPolicy()
        self._sleep = sleep
        self._clock = clock

    def _partition(self, addresses: List[str]):
        hits: Dict[str, Auction] = {}
        must_fetch: List[str] = []
        if self.cache is None:
            return hits, list(addresses)

        now = self._clock()
        for address in addresses:
            entry = self.cache.get(address)
            if (
                entry is not None
                and self.cache.is_fresh(entry.cached_at, now)
                and entry.auction.is_terminal(int(now))
            ):
                hits[address] = entry.auction
            else:
                must_fetch.append(address)
        return hits, must_fetch

    async def _run_batch(
        self,
        batch: List[str],
        cancel: Optional[CancellationToken],
    ) -> List[ReadOutcome]:
        should_stop = (lambda: cancel.cancelled) if cancel is not None else None
        results = await asyncio.gather(
            *(self.reader.fetch(address, should_stop=should_stop) for address in batch),
            return_exceptions=True,
        )

        outcomes = []
        for address, result in zip(batch, results):
            if isinstance(result, ReadOutcome):
                outcomes.append(result)
            else:
                logger.error(f"Unexpected error fetching {address}: {result!r}")
                outcomes.append(ReadOutcome(address=address, attempts=1))
        return outcomes

    def _cache_terminal(self, auctions: Iterable[Auction]) -> None:
        if self.cache is None:
            return
        now = self._clock()
        for auction in auctions:
            if not auction.is_terminal(int(now)):
                continue
            try:
                self.cache.put(auction, now)
            except Exception as e:
                # best effort
                logger.warning(f"Could not cache ended auction {auction.address}: {e}")

    async def fetch_all(
        self,
        addresses: Iterable[str],
        cancel: Optional[CancellationToken] = None,
    ) -> FetchResult:
        """
        Fetch every auction in ``addresses``.

        Never raises for read failures; they are reported in
        ``FetchResult.failed``.

        Args:
            addresses: Auction contract addresses (duplicates ignored)
            cancel: Optional token checked between batches and retries

        Returns:
            FetchResult
        """
        ordered: List[str] = []
        seen = set()
        for address in addresses:
            key = normalize_address(address)
            if key not in seen:
                seen.add(key)
                ordered.append(address)

        result = FetchResult()
        hits, must_fetch = self._partition(ordered)
        result.cache_hits = len(hits)
        resolved: Dict[str, Auction] = dict(hits)

        plan = self.policy.initial_plan(len(must_fetch))
        if must_fetch:
            logger.info(
                f"Fetching {len(must_fetch)} auction(s) ({len(hits)} from cache) "
                f"in batches of {plan.size}, {plan.delay:g}s apart"
            )

        remaining = deque(must_fetch)
        error_count = 0
        batch_index = 0
        fetched: List[Auction] = []

        while remaining:
            if batch_index > 0:
                await self._sleep(self.policy.wait_before_batch(plan, error_count))

            if cancel is not None and cancel.cancelled:
                result.cancelled = True
                result.skipped = list(remaining)
                logger.info(f"Aggregation cancelled with {len(remaining)} address(es) left")
                break

            batch = [remaining.popleft() for _ in range(min(plan.size, len(remaining)))]
            logger.debug(f"Batch {batch_index + 1}: {len(batch)} address(es)")

            outcomes = await self._run_batch(batch, cancel)
            new_errors = 0
            for outcome in outcomes:
                if outcome.retried:
                    result.retried += 1
                if outcome.ok:
                    resolved[outcome.address] = outcome.auction
                    fetched.append(outcome.auction)
                else:
                    new_errors += 1
                    result.failed.append(outcome.address)

            error_count += new_errors
            if new_errors:
                logger.warning(f"{new_errors} failure(s) in batch {batch_index + 1}, {error_count} total")

            plan = next_batch_plan(plan, len(remaining), error_count, self.policy)
            batch_index += 1

        self._cache_terminal(fetched)

        result.fetched = len(fetched)
        result.auctions = [resolved[a] for a in ordered if a in resolved]

        if result.failed:
            logger.warning(f"{len(result.failed)} items failed; results are partial")
        logger.info(result.summary())
        return result
