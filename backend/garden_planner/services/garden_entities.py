# backend/garden_planner/services/garden_entities.py
"""
In-memory garden entities consumed and produced by the layout core.

Gardens, zones and plants are immutable snapshots for the duration of an
optimization run. A Layout is produced once by the zone assignment engine
and never mutated afterwards; a re-run supersedes it with a new Layout.
"""

from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from .. import config


# =============================================================================
# CONFIGURATION
# =============================================================================

MIN_SPACING = 0.25      # feet
MAX_SPACING = 10.0      # feet
MIN_SUNLIGHT_HOURS = 0
MAX_SUNLIGHT_HOURS = 24

MIN_GARDEN_AREA = 1     # sq ft
MAX_GARDEN_AREA = 1000  # sq ft

FULL_SUN_HOURS = 6
PARTIAL_SHADE_HOURS = 4

UNPLACED_NO_ELIGIBLE_ZONE = "NO_ELIGIBLE_ZONE"
UNPLACED_TIMED_OUT = "TIMED_OUT"


def _frozen_ids(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(str(v) for v in (values or ()))


def sunlight_condition(hours: float) -> str:
    """Classify daily sunlight hours as FULL_SUN, PARTIAL_SHADE or FULL_SHADE."""
    if hours >= FULL_SUN_HOURS:
        return "FULL_SUN"
    if hours >= PARTIAL_SHADE_HOURS:
        return "PARTIAL_SHADE"
    return "FULL_SHADE"


# =============================================================================
# GARDEN INPUT
# =============================================================================

@dataclass(frozen=True)
class Plant:
    """A desired plant and how many of it should be grown."""
    id: str
    type: str
    spacing_side_length: float   # feet
    quantity: int
    sunlight_hours_needed: float
    days_to_maturity: int
    companion_plant_ids: FrozenSet[str] = field(default_factory=frozenset)
    incompatible_plant_ids: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, 'companion_plant_ids', _frozen_ids(self.companion_plant_ids))
        object.__setattr__(self, 'incompatible_plant_ids', _frozen_ids(self.incompatible_plant_ids))

    def validation_errors(self) -> list:
        """Return every problem with this plant's own fields (empty if valid)."""
        issues = []

        spacing = self.spacing_side_length
        if spacing is None or not (MIN_SPACING <= spacing <= MAX_SPACING):
            issues.append(
                f"Spacing {spacing} ft outside [{MIN_SPACING}, {MAX_SPACING}] ft"
            )

        if not isinstance(self.quantity, int) or self.quantity <= 0:
            issues.append(f"Quantity {self.quantity} must be a positive integer")

        hours = self.sunlight_hours_needed
        if hours is None or not (MIN_SUNLIGHT_HOURS <= hours <= MAX_SUNLIGHT_HOURS):
            issues.append(f"Sunlight need {hours}h outside [0, 24]")

        if self.days_to_maturity is None or self.days_to_maturity <= 0:
            issues.append(f"Days to maturity {self.days_to_maturity} must be positive")

        if self.id in self.companion_plant_ids or self.id in self.incompatible_plant_ids:
            issues.append("Plant references itself in its companion or incompatible list")

        both = self.companion_plant_ids & self.incompatible_plant_ids
        if both:
            issues.append(
                f"Plants {sorted(both)} listed as both companion and incompatible"
            )

        return issues

    def validate(self) -> bool:
        return not self.validation_errors()


@dataclass(frozen=True)
class Zone:
    """A sub-region of a garden with uniform sunlight and its own area budget."""
    id: str
    area: float                        # sq ft
    sunlight_hours_available: float
    name: Optional[str] = None
    assigned_plant_ids: Tuple[str, ...] = ()

    def validate(self) -> bool:
        return (
            self.area is not None and self.area > 0
            and self.sunlight_hours_available is not None
            and MIN_SUNLIGHT_HOURS <= self.sunlight_hours_available <= MAX_SUNLIGHT_HOURS
        )

    @property
    def sunlight_condition(self) -> str:
        return sunlight_condition(self.sunlight_hours_available)


@dataclass(frozen=True)
class Garden:
    """A bounded garden area, its zones and the plants wanted in it."""
    id: str
    area: float
    zones: Tuple[Zone, ...] = ()
    plants: Tuple[Plant, ...] = ()
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'zones', tuple(self.zones))
        object.__setattr__(self, 'plants', tuple(self.plants))

    def plants_by_id(self) -> Dict[str, Plant]:
        return {plant.id: plant for plant in self.plants}

    def zones_by_id(self) -> Dict[str, Zone]:
        return {zone.id: zone for zone in self.zones}


@dataclass(frozen=True)
class OptimizationParams:
    """
    Knobs for one optimization run.

    min_zone_size drops smaller zones from the candidate set. default_spacing
    is carried through untouched: missing spacing is a validation failure
    here and defaulting belongs to the caller. sunlight_tolerance_hours is
    the only way a plant may land in a zone with less sun than it needs.
    """
    target_utilization_percent: float = 92.0
    min_zone_size: Optional[float] = None
    default_spacing: Optional[float] = None
    time_budget_ms: int = 3000
    sunlight_tolerance_hours: float = 0.0
    use_companion_tiebreak: bool = True

    @classmethod
    def from_config(cls, **overrides) -> "OptimizationParams":
        values = {
            'target_utilization_percent': config.TARGET_UTILIZATION_PERCENT,
            'min_zone_size': config.MIN_ZONE_SIZE,
            'default_spacing': config.DEFAULT_SPACING,
            'time_budget_ms': config.OPTIMIZATION_TIME_BUDGET_MS,
            'sunlight_tolerance_hours': config.SUNLIGHT_TOLERANCE_HOURS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'target_utilization_percent': self.target_utilization_percent,
            'min_zone_size': self.min_zone_size,
            'default_spacing': self.default_spacing,
            'time_budget_ms': self.time_budget_ms,
            'sunlight_tolerance_hours': self.sunlight_tolerance_hours,
            'use_companion_tiebreak': self.use_companion_tiebreak,
        }


# =============================================================================
# LAYOUT OUTPUT
# =============================================================================

@dataclass(frozen=True)
class PlantAllocation:
    plant_id: str
    count: int


@dataclass(frozen=True)
class UnplacedUnits:
    plant_id: str
    count: int
    reason: str


@dataclass(frozen=True)
class TolerancePlacement:
    """Units placed in a zone whose sunlight falls short of the plant's need."""
    zone_id: str
    plant_id: str
    count: int
    deficit_hours: float


@dataclass(frozen=True)
class Layout:
    """Zone assignment produced by one optimization run."""
    garden_id: str
    zone_assignments: Mapping[str, Tuple[PlantAllocation, ...]]
    space_utilization: float           # percent of the zoned (usable) area
    zone_utilization: Mapping[str, float]
    generated_at: datetime
    target_utilization_percent: float
    achieved_target_utilization: bool
    garden_utilization: float = 0.0    # percent of the whole garden area
    timed_out: bool = False
    unplaced_units: Tuple[UnplacedUnits, ...] = ()
    tolerance_placements: Tuple[TolerancePlacement, ...] = ()
    elapsed_ms: float = 0.0

    __hash__ = None

    def __post_init__(self):
        object.__setattr__(self, 'zone_assignments', MappingProxyType({
            zone_id: tuple(allocations)
            for zone_id, allocations in self.zone_assignments.items()
        }))
        object.__setattr__(self, 'zone_utilization', MappingProxyType(dict(self.zone_utilization)))
        object.__setattr__(self, 'unplaced_units', tuple(self.unplaced_units))
        object.__setattr__(self, 'tolerance_placements', tuple(self.tolerance_placements))

    @property
    def placed_unit_count(self) -> int:
        return sum(a.count for allocations in self.zone_assignments.values() for a in allocations)

    @property
    def unplaced_unit_count(self) -> int:
        return sum(u.count for u in self.unplaced_units)

    def plant_ids_in_zone(self, zone_id: str) -> Tuple[str, ...]:
        return tuple(a.plant_id for a in self.zone_assignments.get(zone_id, ()))

    def to_dict(self) -> Dict[str, Any]:
        """Export layout as a self-describing dictionary."""
        return {
            'garden_id': self.garden_id,
            'zone_assignments': {
                zone_id: [{'plant_id': a.plant_id, 'count': a.count} for a in allocations]
                for zone_id, allocations in self.zone_assignments.items()
            },
            'space_utilization': self.space_utilization,
            'garden_utilization': self.garden_utilization,
            'zone_utilization': dict(self.zone_utilization),
            'generated_at': self.generated_at.isoformat(),
            'target_utilization_percent': self.target_utilization_percent,
            'achieved_target_utilization': self.achieved_target_utilization,
            'timed_out': self.timed_out,
            'unplaced_units': [
                {'plant_id': u.plant_id, 'count': u.count, 'reason': u.reason}
                for u in self.unplaced_units
            ],
            'tolerance_placements': [
                {
                    'zone_id': t.zone_id,
                    'plant_id': t.plant_id,
                    'count': t.count,
                    'deficit_hours': t.deficit_hours,
                }
                for t in self.tolerance_placements
            ],
            'elapsed_ms': self.elapsed_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Layout":
        return cls(
            garden_id=data['garden_id'],
            zone_assignments={
                zone_id: tuple(PlantAllocation(a['plant_id'], a['count']) for a in allocations)
                for zone_id, allocations in data['zone_assignments'].items()
            },
            space_utilization=data['space_utilization'],
            garden_utilization=data.get('garden_utilization', 0.0),
            zone_utilization=data.get('zone_utilization', {}),
            generated_at=datetime.fromisoformat(data['generated_at']),
            target_utilization_percent=data['target_utilization_percent'],
            achieved_target_utilization=data['achieved_target_utilization'],
            timed_out=data.get('timed_out', False),
            unplaced_units=tuple(
                UnplacedUnits(u['plant_id'], u['count'], u['reason'])
                for u in data.get('unplaced_units', [])
            ),
            tolerance_placements=tuple(
                TolerancePlacement(t['zone_id'], t['plant_id'], t['count'], t['deficit_hours'])
                for t in data.get('tolerance_placements', [])
            ),
            elapsed_ms=data.get('elapsed_ms', 0.0),
        )
