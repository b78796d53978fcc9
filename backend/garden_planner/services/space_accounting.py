# backend/garden_planner/services/space_accounting.py
# Required-area and utilization calculations
# All functions are pure; a Layout plus its Garden is enough to recompute
# every number the optimizer reports.

from typing import Iterable, Mapping
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
import logging

from .garden_entities import Garden, Layout, Plant, PlantAllocation, Zone

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

ACCESSIBILITY_BUFFER = 1.2  # 20% extra space for access, applied to every plant


# =============================================================================
# ROUNDING
# =============================================================================

def round_half_up(value: float, places: int = 2) -> float:
    """
    Round to a fixed number of decimals with ties going away from zero.

    Uses the shortest decimal representation of the float, so 38.400000000000006
    becomes 38.4 and 12.345 becomes 12.35.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def percent_of(used_area: float, total_area: float) -> float:
    """Used area as a clamped, rounded percentage of total area."""
    if total_area <= 0:
        return 0.0
    return round_half_up(clamp_percent(used_area / total_area * 100))


# =============================================================================
# REQUIRED AREA
# =============================================================================

def unit_area(plant: Plant) -> float:
    """Footprint of a single plant unit including the accessibility buffer."""
    return plant.spacing_side_length ** 2 * ACCESSIBILITY_BUFFER


def required_area(plant: Plant) -> float:
    """Footprint of every unit of a plant (spacing^2 * quantity * 1.2)."""
    return plant.spacing_side_length ** 2 * plant.quantity * ACCESSIBILITY_BUFFER


def total_required_area(plants: Iterable[Plant]) -> float:
    return sum(required_area(plant) for plant in plants)


def allocated_area(allocations: Iterable[PlantAllocation], plants_by_id: Mapping[str, Plant]) -> float:
    """Area taken by allocated units."""
    return sum(unit_area(plants_by_id[a.plant_id]) * a.count for a in allocations)


# =============================================================================
# UTILIZATION
# =============================================================================

def zone_utilization(zone: Zone, plants_in_zone: Iterable[Plant]) -> float:
    """
    Percentage of a zone's area taken by the given plants.

    Each plant counts with its own quantity; pass a copy with the placed
    count as quantity to measure a partial allocation.
    """
    return percent_of(total_required_area(plants_in_zone), zone.area)


def garden_utilization(garden: Garden, assignment: Mapping[str, Iterable[PlantAllocation]]) -> float:
    """Percentage of the garden's area taken by every assigned plant unit."""
    plants_by_id = garden.plants_by_id()
    used = sum(
        allocated_area(allocations, plants_by_id)
        for allocations in assignment.values()
    )
    return percent_of(used, garden.area)


def usable_area(garden: Garden) -> float:
    """Area actually available for planting: the sum of zone areas."""
    return sum(zone.area for zone in garden.zones)


def space_utilization(garden: Garden, assignment: Mapping[str, Iterable[PlantAllocation]]) -> float:
    """
    Percentage of the garden's usable (zoned) area taken by assigned units.

    Equals garden_utilization when the zones cover the whole garden.
    """
    plants_by_id = garden.plants_by_id()
    used = sum(
        allocated_area(allocations, plants_by_id)
        for allocations in assignment.values()
    )
    return percent_of(used, usable_area(garden))


def plants_for_allocations(allocations: Iterable[PlantAllocation],
                           plants_by_id: Mapping[str, Plant]) -> list:
    """Plant snapshots whose quantity equals the allocated count."""
    return [replace(plants_by_id[a.plant_id], quantity=a.count) for a in allocations]


def layout_zone_utilization(layout: Layout, garden: Garden, zone_id: str) -> float:
    """Recompute one zone's utilization from a Layout without re-optimizing."""
    zone = garden.zones_by_id()[zone_id]
    allocations = layout.zone_assignments.get(zone_id, ())
    return zone_utilization(zone, plants_for_allocations(allocations, garden.plants_by_id()))


def layout_garden_utilization(layout: Layout, garden: Garden) -> float:
    """Recompute garden utilization from a Layout without re-optimizing."""
    return garden_utilization(garden, layout.zone_assignments)


def layout_space_utilization(layout: Layout, garden: Garden) -> float:
    """Recompute the Layout's space_utilization without re-optimizing."""
    return space_utilization(garden, layout.zone_assignments)
