"""Route distance resolution for the locations step.

Every coordinate change bumps a request generation. A lookup result is only
applied when its generation is still the current one, so a slow response for
a superseded pair of points can never overwrite a newer one. Superseded
lookups are left to finish on their own and their results are dropped.
"""
import asyncio
import logging
from typing import Optional, Protocol, Set

from booking_wizard.core.config import settings
from booking_wizard.core.metrics import distance_cache_hits, distance_cache_misses, distance_lookups
from booking_wizard.core.redis import get_redis
from booking_wizard.schemas.wizard import Coords
from booking_wizard.utils.hashing import coords_pair_hash

logger = logging.getLogger(__name__)


class DistanceCalculator(Protocol):
    async def calculate_distance(self, pickup: Coords, dropoff: Coords) -> float:
        ...


def _cache_key(pickup: Coords, dropoff: Coords) -> str:
    return f"distance:{coords_pair_hash(pickup.lat, pickup.lng, dropoff.lat, dropoff.lng)}"


async def get_cached_distance(pickup: Coords, dropoff: Coords) -> Optional[float]:
    redis = get_redis()
    if redis is None:
        return None
    try:
        cached = await redis.get(_cache_key(pickup, dropoff))
    except Exception as e:
        logger.warning(f"Cache retrieval failed: {e}")
        return None
    if cached is None:
        distance_cache_misses.inc()
        return None
    distance_cache_hits.inc()
    return float(cached)


async def cache_distance(pickup: Coords, dropoff: Coords, distance_km: float) -> None:
    redis = get_redis()
    if redis is None:
        return
    try:
        await redis.set(_cache_key(pickup, dropoff), str(distance_km), ex=settings.DISTANCE_CACHE_TTL)
    except Exception as e:
        logger.warning(f"Cache write failed: {e}")


async def lookup_distance(calculator: DistanceCalculator, pickup: Coords, dropoff: Coords) -> float:
    cached = await get_cached_distance(pickup, dropoff)
    if cached is not None:
        return cached

    distance_km = await calculator.calculate_distance(pickup, dropoff)
    if distance_km > 0:
        await cache_distance(pickup, dropoff, distance_km)
    return distance_km


class DistanceResolver:

    def __init__(self, calculator: DistanceCalculator):
        self._calculator = calculator
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()
        self.distance_km = 0.0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_calculating(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def update(self, pickup: Optional[Coords], dropoff: Optional[Coords]) -> None:
        """React to a coordinate change. Must be called from a running event loop."""
        self._generation += 1
        generation = self._generation

        if pickup is None or dropoff is None:
            self.distance_km = 0.0
            distance_lookups.labels(outcome="skipped").inc()
            logger.debug(
                f"Waiting for both locations (pickup={pickup is not None}, dropoff={dropoff is not None})"
            )
            return

        # The old pair's distance must not be priced against the new points.
        self.distance_km = 0.0
        logger.info(
            f"Resolving route distance #{generation}: "
            f"({pickup.lat}, {pickup.lng}) -> ({dropoff.lat}, {dropoff.lng})"
        )
        task = asyncio.get_running_loop().create_task(self._resolve(generation, pickup, dropoff))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(self, generation: int, pickup: Coords, dropoff: Coords) -> None:
        try:
            distance_km = await lookup_distance(self._calculator, pickup, dropoff)
        except Exception as e:
            if generation != self._generation:
                distance_lookups.labels(outcome="discarded").inc()
                logger.debug(f"Ignoring failure of superseded distance lookup #{generation}: {e}")
                return
            self.distance_km = 0.0
            distance_lookups.labels(outcome="failed").inc()
            logger.warning(f"Route distance lookup #{generation} failed: {e}")
            return

        if generation != self._generation:
            distance_lookups.labels(outcome="discarded").inc()
            logger.debug(f"Discarding stale distance {distance_km} km from lookup #{generation}")
            return

        if distance_km <= 0:
            self.distance_km = 0.0
            distance_lookups.labels(outcome="invalid").inc()
            logger.warning(f"Invalid distance returned by lookup #{generation}: {distance_km}")
            return

        self.distance_km = distance_km
        distance_lookups.labels(outcome="success").inc()
        logger.info(f"Route distance #{generation}: {distance_km} km")

    async def wait_idle(self) -> None:
        pending = [task for task in self._tasks if not task.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in self._tasks if not task.done()]

    def close(self) -> None:
        # Anything still in flight now belongs to an older generation.
        self._generation += 1
