from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..geo.distance import Coordinate, distance
from ..students.model import Eligibility
from .model import Center

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    matched: bool
    distance_m: float
    center: Optional[Center]

    @property
    def has_candidate(self) -> bool:
        return self.center is not None


NO_CANDIDATE = Resolution(matched=False, distance_m=math.inf, center=None)


class CenterResolver:
    """Pick the center a coordinate is checking into.

    Hits (distance <= radius) beat misses; among hits the nearest wins and an
    exact distance tie goes to the center listed first. Without a hit the
    nearest candidate is still reported so the student can be told how far
    off they are.
    """

    def resolve(self, point: Coordinate, directory: Iterable[Center], eligibility: Eligibility) -> Resolution:
        candidates = self._candidates(directory, eligibility)
        if not candidates:
            return NO_CANDIDATE

        origin = point.normalized()
        best_hit: Optional[Center] = None
        best_hit_distance = math.inf
        nearest: Optional[Center] = None
        nearest_distance = math.inf

        for center in candidates:
            d = distance(origin, center.coordinate.normalized())
            logger.debug("distance to %s: %.1fm (radius %sm)", center.name, d, center.radius_m)

            # Strict '<' keeps the earlier center on an exact tie.
            if d < nearest_distance:
                nearest, nearest_distance = center, d
            if d <= float(center.radius_m) and d < best_hit_distance:
                best_hit, best_hit_distance = center, d

        if best_hit is not None:
            return Resolution(matched=True, distance_m=best_hit_distance, center=best_hit)
        return Resolution(matched=False, distance_m=nearest_distance, center=nearest)

    def _candidates(self, directory: Iterable[Center], eligibility: Eligibility) -> List[Center]:
        valid: List[Center] = []
        for center in directory:
            problem = center.configuration_problem()
            if problem:
                logger.warning("Excluding center %s (%s) from resolution: %s", center.center_id, center.name, problem)
                continue
            valid.append(center)

        if eligibility.is_restricted:
            # No fallback: an assigned student is judged against that center only.
            assigned = next((c for c in valid if c.matches_ref(eligibility.assigned_center)), None)
            if assigned is None or not assigned.is_active:
                logger.info("Assigned center %r is not an active center", eligibility.assigned_center)
                return []
            return [assigned]

        return [c for c in valid if c.is_active]
