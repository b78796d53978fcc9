# backend/garden_planner/services/compatibility.py
# Companion / incompatible plant relations
# Conflicts use union semantics: one declared direction is enough.
# Synergy is informational and only ever used as a placement tie-breaker.

from typing import Dict, FrozenSet, Iterable, List, Set, Tuple
import logging

from .garden_entities import Plant

logger = logging.getLogger(__name__)


# =============================================================================
# PAIRWISE RELATIONS
# =============================================================================

def conflicts(p1: Plant, p2: Plant) -> bool:
    """
    Check if two plants must not share a zone.

    True if either plant lists the other in incompatible_plant_ids. Declared
    data is never symmetrized; a one-sided declaration still counts.
    """
    if p1.id == p2.id:
        return False
    return p2.id in p1.incompatible_plant_ids or p1.id in p2.incompatible_plant_ids


def synergy(p1: Plant, p2: Plant) -> bool:
    """Check if either plant lists the other as a companion."""
    if p1.id == p2.id:
        return False
    return p2.id in p1.companion_plant_ids or p1.id in p2.companion_plant_ids


def asymmetric_declarations(plants: Iterable[Plant]) -> List[Tuple[str, str]]:
    """
    Find incompatibilities declared in only one direction.

    Returns sorted (declarer, target) pairs, limited to targets present in
    the given plant set.
    """
    by_id = {plant.id: plant for plant in plants}
    pairs = []
    for plant in by_id.values():
        for other_id in plant.incompatible_plant_ids:
            other = by_id.get(other_id)
            if other is None or other.id == plant.id:
                continue
            if plant.id not in other.incompatible_plant_ids:
                pairs.append((plant.id, other.id))
    return sorted(pairs)


# =============================================================================
# PRECOMPUTED MODEL
# =============================================================================

class CompatibilityModel:
    """
    Conflict and companion adjacency over one garden's plant set.

    Built once per optimization run so zone checks are set intersections
    instead of pairwise scans.
    """

    def __init__(self, plants: Iterable[Plant]):
        self._plants: Dict[str, Plant] = {plant.id: plant for plant in plants}
        self._conflicts: Dict[str, Set[str]] = {pid: set() for pid in self._plants}
        self._companions: Dict[str, Set[str]] = {pid: set() for pid in self._plants}

        for plant in self._plants.values():
            for other_id in plant.incompatible_plant_ids:
                if other_id in self._plants and other_id != plant.id:
                    self._conflicts[plant.id].add(other_id)
                    self._conflicts[other_id].add(plant.id)
            for other_id in plant.companion_plant_ids:
                if other_id in self._plants and other_id != plant.id:
                    self._companions[plant.id].add(other_id)
                    self._companions[other_id].add(plant.id)

    def conflicts(self, plant_id: str, other_id: str) -> bool:
        return other_id in self._conflicts.get(plant_id, ())

    def conflict_ids(self, plant_id: str) -> FrozenSet[str]:
        return frozenset(self._conflicts.get(plant_id, ()))

    def conflicts_with_any(self, plant_id: str, plant_ids: Iterable[str]) -> bool:
        """Check a plant against everything already placed somewhere."""
        conflict_set = self._conflicts.get(plant_id)
        if not conflict_set:
            return False
        return not conflict_set.isdisjoint(plant_ids)

    def synergy_score(self, plant_id: str, plant_ids: Iterable[str]) -> int:
        """Count distinct companions of plant_id among plant_ids."""
        companions = self._companions.get(plant_id)
        if not companions:
            return 0
        return len(companions.intersection(plant_ids))

    def conflicting_pairs(self) -> List[Tuple[str, str]]:
        """All conflicting pairs as sorted (a, b) tuples with a < b."""
        pairs = set()
        for plant_id, others in self._conflicts.items():
            for other_id in others:
                pairs.add(tuple(sorted((plant_id, other_id))))
        return sorted(pairs)
