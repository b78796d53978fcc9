# backend/garden_planner/services/zone_assignment.py
"""
Zone Assignment Engine

Assigns plant units to garden zones under sunlight, capacity and conflict
constraints using largest-item-first best-fit packing. The heuristic is
deterministic: the same garden and parameters always give the same
zone assignments unless the soft time budget cuts the run short.

Usage:
    from .zone_assignment import optimize

    layout = optimize(garden, OptimizationParams(target_utilization_percent=92))
    if not layout.achieved_target_utilization:
        ...  # present as best effort
"""

from typing import Callable, Dict, List, Optional, Tuple
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
import time

from .compatibility import CompatibilityModel
from .garden_entities import (
    Garden,
    Layout,
    OptimizationParams,
    Plant,
    PlantAllocation,
    TolerancePlacement,
    UnplacedUnits,
    Zone,
    UNPLACED_NO_ELIGIBLE_ZONE,
    UNPLACED_TIMED_OUT,
)
from .garden_validation import ensure_valid
from .space_accounting import (
    garden_utilization,
    plants_for_allocations,
    space_utilization,
    unit_area,
    zone_utilization,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

RESIDUE_PRECISION = 9      # decimals kept when comparing leftover capacity
CAPACITY_EPSILON = 1e-9    # sq ft of float slack when checking if a unit fits
SUNLIGHT_EPSILON = 1e-9    # hours of float slack on the tolerance band


class OptimizationFailure(Exception):
    """Unrecoverable internal error while optimizing a valid garden."""

    def __init__(self, garden_id: str, message: str):
        self.garden_id = garden_id
        self.message = message
        super().__init__(f"Optimization failed for garden {garden_id}: {message}")


# =============================================================================
# WORKING STATE
# =============================================================================

@dataclass(frozen=True)
class PlantUnit:
    """One placeable instance derived from a plant's quantity."""
    plant: Plant
    area: float
    declaration_order: int
    index: int


@dataclass
class ZoneState:
    """Remaining capacity and placed plants of one zone during a run."""
    zone: Zone
    remaining: float
    plant_ids: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)

    def can_fit(self, area: float) -> bool:
        return self.remaining + CAPACITY_EPSILON >= area

    def place(self, plant_id: str, area: float) -> None:
        if plant_id not in self.counts:
            self.plant_ids.append(plant_id)
            self.counts[plant_id] = 0
        self.counts[plant_id] += 1
        self.remaining -= area

    def allocations(self) -> Tuple[PlantAllocation, ...]:
        return tuple(PlantAllocation(pid, self.counts[pid]) for pid in self.plant_ids)


def expand_units(plants: Tuple[Plant, ...]) -> List[PlantUnit]:
    """One unit per quantity, all sharing the plant's profile."""
    units = []
    for order, plant in enumerate(plants):
        area = unit_area(plant)
        for index in range(plant.quantity):
            units.append(PlantUnit(plant=plant, area=area, declaration_order=order, index=index))
    return units


def sort_units(units: List[PlantUnit]) -> List[PlantUnit]:
    """Largest per-unit footprint first; ties by plant id then declaration order."""
    return sorted(
        units,
        key=lambda u: (-round(u.area, RESIDUE_PRECISION), u.plant.id, u.declaration_order, u.index),
    )


def sort_zones(zones: Tuple[Zone, ...]) -> List[Zone]:
    """Largest zone first; ties by zone id."""
    return sorted(zones, key=lambda z: (-z.area, z.id))


# =============================================================================
# ZONE SELECTION
# =============================================================================

def _best_fit_key(state: ZoneState, unit: PlantUnit, model: CompatibilityModel,
                  use_synergy: bool) -> Tuple[float, int, str]:
    residue = round(state.remaining - unit.area, RESIDUE_PRECISION)
    synergy = model.synergy_score(unit.plant.id, state.counts) if use_synergy else 0
    return (residue, -synergy, state.zone.id)


def select_zone(unit: PlantUnit, states: List[ZoneState], model: CompatibilityModel,
                params: OptimizationParams) -> Tuple[Optional[ZoneState], Optional[float]]:
    """
    Pick the zone for one unit.

    Returns (zone_state, deficit_hours). deficit_hours is None for an exact
    sunlight match and the shortfall when the tolerance band was used.
    Returns (None, None) when no zone qualifies.
    """
    plant = unit.plant
    fitting = [
        s for s in states
        if s.can_fit(unit.area) and not model.conflicts_with_any(plant.id, s.counts)
    ]
    if not fitting:
        return None, None

    exact = [s for s in fitting if s.zone.sunlight_hours_available >= plant.sunlight_hours_needed]
    if exact:
        best = min(exact, key=lambda s: _best_fit_key(s, unit, model, params.use_companion_tiebreak))
        return best, None

    tolerance = params.sunlight_tolerance_hours or 0.0
    if tolerance <= 0:
        return None, None

    near = [
        s for s in fitting
        if plant.sunlight_hours_needed - s.zone.sunlight_hours_available <= tolerance + SUNLIGHT_EPSILON
    ]
    if not near:
        return None, None

    def tolerance_key(state: ZoneState):
        deficit = round(plant.sunlight_hours_needed - state.zone.sunlight_hours_available, RESIDUE_PRECISION)
        return (deficit,) + _best_fit_key(state, unit, model, params.use_companion_tiebreak)

    best = min(near, key=tolerance_key)
    return best, round(plant.sunlight_hours_needed - best.zone.sunlight_hours_available, 4)


# =============================================================================
# VERIFICATION
# =============================================================================

def verify_layout(layout: Layout, garden: Garden, sunlight_tolerance_hours: float = 0.0) -> List[str]:
    """
    Check a layout against its garden: known ids, capacity, conflicts, sunlight.

    Returns a list of problems; empty when the layout is consistent.
    """
    issues = []
    zones = garden.zones_by_id()
    plants = garden.plants_by_id()
    model = CompatibilityModel(garden.plants)

    for zone_id, allocations in layout.zone_assignments.items():
        zone = zones.get(zone_id)
        if zone is None:
            issues.append(f"Unknown zone {zone_id}")
            continue

        used = 0.0
        placed_ids = []
        for allocation in allocations:
            plant = plants.get(allocation.plant_id)
            if plant is None:
                issues.append(f"Unknown plant {allocation.plant_id} in zone {zone_id}")
                continue
            used += unit_area(plant) * allocation.count

            deficit = plant.sunlight_hours_needed - zone.sunlight_hours_available
            if deficit > sunlight_tolerance_hours + SUNLIGHT_EPSILON:
                issues.append(
                    f"Plant {plant.id} needs {plant.sunlight_hours_needed}h but zone {zone_id} "
                    f"gets {zone.sunlight_hours_available}h"
                )
            if model.conflicts_with_any(plant.id, placed_ids):
                issues.append(f"Plant {plant.id} conflicts with another plant in zone {zone_id}")
            placed_ids.append(plant.id)

        if used > zone.area + CAPACITY_EPSILON * max(1, len(allocations)):
            issues.append(f"Zone {zone_id} over capacity: {used:.4f} > {zone.area} sq ft")

    return issues


# =============================================================================
# ENGINE
# =============================================================================

def _run(garden: Garden, params: OptimizationParams, clock: Callable[[], float],
         start: float) -> Layout:
    model = CompatibilityModel(garden.plants)
    states = [
        ZoneState(zone=zone, remaining=zone.area)
        for zone in sort_zones(garden.zones)
        if params.min_zone_size is None or zone.area >= params.min_zone_size
    ]
    units = sort_units(expand_units(garden.plants))
    budget_seconds = params.time_budget_ms / 1000.0
    smallest_area = units[-1].area if units else 0.0

    # Zones that cannot take even the smallest unit drop out of the scan
    open_states = [state for state in states if state.can_fit(smallest_area)]
    unplaced: "OrderedDict[Tuple[str, str], int]" = OrderedDict()
    tolerance_used: "OrderedDict[Tuple[str, str], List[float]]" = OrderedDict()
    no_zone_plants = set()
    timed_out = False

    # Units of one plant are contiguous. Placing a unit only shrinks the chosen
    # zone's residue, so that zone stays the best choice for the plant's next
    # unit until it is full, and a plant that found no zone never will.
    current: Tuple[Optional[str], Optional[ZoneState], Optional[float]] = (None, None, None)

    for position, unit in enumerate(units):
        if clock() - start > budget_seconds:
            timed_out = True
            for rest in units[position:]:
                key = (rest.plant.id, UNPLACED_TIMED_OUT)
                unplaced[key] = unplaced.get(key, 0) + 1
            logger.warning(
                f"Garden {garden.id}: time budget {params.time_budget_ms}ms exceeded after "
                f"{position}/{len(units)} units, returning partial layout"
            )
            break

        plant_id = unit.plant.id
        if plant_id in no_zone_plants:
            state = None
        elif current[0] == plant_id and current[1].can_fit(unit.area):
            state, deficit = current[1], current[2]
        else:
            state, deficit = select_zone(unit, open_states, model, params)

        if state is None:
            no_zone_plants.add(plant_id)
            current = (None, None, None)
            key = (plant_id, UNPLACED_NO_ELIGIBLE_ZONE)
            unplaced[key] = unplaced.get(key, 0) + 1
            continue

        state.place(plant_id, unit.area)
        current = (plant_id, state, deficit)
        if not state.can_fit(smallest_area):
            open_states.remove(state)
        if deficit is not None:
            entry = tolerance_used.setdefault((state.zone.id, plant_id), [0, deficit])
            entry[0] += 1

    states_by_id = {state.zone.id: state for state in states}
    assignment = {
        zone.id: states_by_id[zone.id].allocations() if zone.id in states_by_id else ()
        for zone in garden.zones
    }

    plants_by_id = garden.plants_by_id()
    utilization = space_utilization(garden, assignment)
    per_zone = {
        zone.id: zone_utilization(zone, plants_for_allocations(assignment[zone.id], plants_by_id))
        for zone in garden.zones
    }
    unplaced_units = tuple(
        UnplacedUnits(plant_id=plant_id, count=count, reason=reason)
        for (plant_id, reason), count in unplaced.items()
    )

    return Layout(
        garden_id=garden.id,
        zone_assignments=assignment,
        space_utilization=utilization,
        zone_utilization=per_zone,
        generated_at=datetime.now(timezone.utc),
        target_utilization_percent=params.target_utilization_percent,
        achieved_target_utilization=(
            utilization >= params.target_utilization_percent and not unplaced_units
        ),
        garden_utilization=garden_utilization(garden, assignment),
        timed_out=timed_out,
        unplaced_units=unplaced_units,
        tolerance_placements=tuple(
            TolerancePlacement(zone_id=zone_id, plant_id=plant_id, count=count, deficit_hours=deficit)
            for (zone_id, plant_id), (count, deficit) in tolerance_used.items()
        ),
        elapsed_ms=round((clock() - start) * 1000, 3),
    )


def optimize(garden: Garden, params: Optional[OptimizationParams] = None,
             clock: Callable[[], float] = time.monotonic) -> Layout:
    """
    Generate a layout for a garden.

    Args:
        garden: Garden snapshot; never mutated
        params: Optimization parameters (defaults if omitted)
        clock: Monotonic seconds source used for the soft time budget

    Returns:
        Layout, possibly partial. Infeasibility and time-outs are reported
        through achieved_target_utilization, unplaced_units and timed_out.

    Raises:
        ValidationFailure: the garden violates an invariant
        OptimizationFailure: unexpected internal error
    """
    params = params or OptimizationParams()
    ensure_valid(garden, params.min_zone_size)

    start = clock()
    try:
        layout = _run(garden, params, clock, start)
    except Exception as e:
        logger.error(f"Garden {garden.id}: optimization crashed: {e}", exc_info=True)
        raise OptimizationFailure(garden.id, str(e)) from e

    issues = verify_layout(layout, garden, params.sunlight_tolerance_hours)
    if issues:
        logger.error(f"Garden {garden.id}: produced inconsistent layout: {issues[:5]}")
        raise OptimizationFailure(garden.id, "; ".join(issues[:5]))

    logger.info(
        f"Garden {garden.id}: placed {layout.placed_unit_count} units, "
        f"{layout.unplaced_unit_count} unplaced, utilization {layout.space_utilization}% "
        f"(target {params.target_utilization_percent}%) in {layout.elapsed_ms}ms"
        + (" [timed out]" if layout.timed_out else "")
    )
    return layout


def zones_with_assignments(garden: Garden, layout: Layout) -> Tuple[Zone, ...]:
    """Zone snapshots whose assigned_plant_ids mirror the layout."""
    return tuple(
        replace(zone, assigned_plant_ids=layout.plant_ids_in_zone(zone.id))
        for zone in garden.zones
    )
