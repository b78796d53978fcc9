# backend/garden_planner/services/layout_cache.py
# Layout cache and single-flight coordinator
# Concurrent requests for the same garden snapshot share one optimization run.
# The lock only guards the entry/in-flight maps; it is never held while the
# engine runs.

from typing import Any, Callable, Dict, Optional, Tuple
from collections import OrderedDict
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
import hashlib
import json
import logging
import threading
import time

from .garden_entities import Garden, Layout, OptimizationParams
from .zone_assignment import optimize

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


class CacheCoordinationFailure(Exception):
    """Delivered to callers that joined an in-flight run which then failed."""

    def __init__(self, original: BaseException):
        self.original = original
        super().__init__(f"Shared layout computation failed: {original}")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# CACHE KEY
# =============================================================================

def garden_fingerprint(garden: Garden, params: Optional[OptimizationParams] = None) -> str:
    """
    Stable hash of everything that can change a layout.

    Zones and plants are sorted by id and id sets are sorted, so two
    snapshots with equal content hash the same regardless of list order.
    """
    payload = {
        'area': garden.area,
        'zones': [
            {
                'id': zone.id,
                'area': zone.area,
                'sunlight_hours_available': zone.sunlight_hours_available,
            }
            for zone in sorted(garden.zones, key=lambda z: z.id)
        ],
        'plants': [
            {
                'id': plant.id,
                'type': plant.type,
                'spacing_side_length': plant.spacing_side_length,
                'quantity': plant.quantity,
                'sunlight_hours_needed': plant.sunlight_hours_needed,
                'days_to_maturity': plant.days_to_maturity,
                'companion_plant_ids': sorted(plant.companion_plant_ids),
                'incompatible_plant_ids': sorted(plant.incompatible_plant_ids),
            }
            for plant in sorted(garden.plants, key=lambda p: p.id)
        ],
        'params': (params or OptimizationParams()).to_dict(),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


# =============================================================================
# COORDINATOR
# =============================================================================

class LayoutCoordinator:
    """
    Process-wide layout cache with single-flight computation.

    Usage:
        coordinator = LayoutCoordinator(ttl_seconds=86400, max_entries=100)
        layout = coordinator.get_layout(garden, params)
    """

    def __init__(
        self,
        engine: Callable[[Garden, OptimizationParams], Layout] = optimize,
        ttl_seconds: float = 86400,
        max_entries: int = 100,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.engine = engine
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_entries = max(1, int(max_entries))
        self.clock = clock

        self._lock = threading.Lock()
        self._entries: "OrderedDict[CacheKey, Layout]" = OrderedDict()
        self._in_flight: Dict[CacheKey, Future] = {}

        self._hits = 0
        self._misses = 0
        self._computations = 0
        self._failures = 0
        self._evictions = 0
        self._total_ms = 0.0
        self._last_ms = 0.0

    def _is_fresh(self, layout: Layout) -> bool:
        return self.clock() - layout.generated_at < self.ttl

    def get_layout(self, garden: Garden, params: Optional[OptimizationParams] = None) -> Layout:
        """
        Return the cached layout for this garden snapshot, computing it once if needed.

        Raises:
            The engine's own exception for the caller that ran it.
            CacheCoordinationFailure for callers that waited on a failed run.
        """
        params = params or OptimizationParams()
        key = (garden.id, garden_fingerprint(garden, params))

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                if self._is_fresh(cached):
                    self._entries.move_to_end(key)
                    self._hits += 1
                    logger.debug(f"Layout cache hit for garden {garden.id}")
                    return cached
                del self._entries[key]
                logger.debug(f"Layout cache entry expired for garden {garden.id}")

            self._misses += 1
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            logger.debug(f"Waiting on in-flight layout for garden {garden.id}")
            error = future.exception()
            if error is not None:
                raise CacheCoordinationFailure(error) from error
            return future.result()

        return self._compute(key, garden, params, future)

    def _compute(self, key: CacheKey, garden: Garden, params: OptimizationParams,
                 future: Future) -> Layout:
        started = time.perf_counter()
        try:
            layout = self.engine(garden, params)
        except BaseException as e:
            # Interrupts included: the in-flight key must never outlive the run
            with self._lock:
                self._in_flight.pop(key, None)
                self._failures += 1
            logger.error(f"Layout computation failed for garden {garden.id}: {e}")
            future.set_exception(e)
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        with self._lock:
            self._entries[key] = layout
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted cached layout for garden {evicted_key[0]}")
            self._in_flight.pop(key, None)
            self._computations += 1
            self._last_ms = elapsed_ms
            self._total_ms += elapsed_ms

        future.set_result(layout)
        logger.info(
            f"Computed layout for garden {garden.id} in {elapsed_ms:.1f}ms "
            f"(utilization {layout.space_utilization}%)"
        )
        return layout

    def invalidate(self, garden_id: str) -> int:
        """Drop every cached layout of a garden. Returns how many were removed."""
        with self._lock:
            stale = [key for key in self._entries if key[0] == garden_id]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.info(f"Invalidated {len(stale)} cached layout(s) for garden {garden_id}")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'entries': len(self._entries),
                'in_flight': len(self._in_flight),
                'hits': self._hits,
                'misses': self._misses,
                'computations': self._computations,
                'failures': self._failures,
                'evictions': self._evictions,
                'last_computation_ms': round(self._last_ms, 3),
                'average_computation_ms': (
                    round(self._total_ms / self._computations, 3) if self._computations else 0.0
                ),
            }
