# backend/garden_planner/services/garden_validation.py
# Garden invariant validation
# Runs every invariant in a fixed order and stops at the first violation.
# Data-quality issues that do not block optimization come back as warnings.

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging

from .compatibility import CompatibilityModel, asymmetric_declarations
from .garden_entities import (
    Garden,
    MIN_GARDEN_AREA,
    MAX_GARDEN_AREA,
    FULL_SUN_HOURS,
)
from .space_accounting import required_area, usable_area

logger = logging.getLogger(__name__)

# Float slack when comparing summed areas against the garden area
AREA_TOLERANCE = 1e-9


# =============================================================================
# FAILURES
# =============================================================================

class ValidationCode(str, Enum):
    GARDEN_AREA_OUT_OF_RANGE = "GARDEN_AREA_OUT_OF_RANGE"
    NO_ZONES = "NO_ZONES"
    INVALID_ZONE = "INVALID_ZONE"
    DUPLICATE_ZONE_ID = "DUPLICATE_ZONE_ID"
    ZONE_AREA_EXCEEDS_GARDEN = "ZONE_AREA_EXCEEDS_GARDEN"
    INVALID_PLANT = "INVALID_PLANT"
    DUPLICATE_PLANT_ID = "DUPLICATE_PLANT_ID"
    INCOMPATIBLE_PLANTS = "INCOMPATIBLE_PLANTS"
    PLANT_SPACE_EXCEEDS_AREA = "PLANT_SPACE_EXCEEDS_AREA"


class ValidationFailure(Exception):
    """A garden violates one of its invariants. Never retried."""

    def __init__(self, code: ValidationCode, entity_ids: Iterable[str], message: str):
        self.code = ValidationCode(code)
        self.entity_ids = tuple(entity_ids)
        self.message = message
        super().__init__(f"{self.code.value}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code.value,
            'entity_ids': list(self.entity_ids),
            'message': self.message,
        }


@dataclass
class ValidationReport:
    """Outcome of validate_garden: ok, or the first failure found."""
    failure: Optional[ValidationFailure] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.ok,
            'failure': self.failure.to_dict() if self.failure else None,
            'warnings': list(self.warnings),
        }


# =============================================================================
# INDIVIDUAL INVARIANTS
# =============================================================================
# Each check raises ValidationFailure; validate_garden turns that into a report.

def _check_garden_area(garden: Garden) -> None:
    area = garden.area
    if area is None or not (MIN_GARDEN_AREA <= area <= MAX_GARDEN_AREA):
        raise ValidationFailure(
            ValidationCode.GARDEN_AREA_OUT_OF_RANGE,
            [garden.id],
            f"Garden area {area} sq ft must be between {MIN_GARDEN_AREA} and {MAX_GARDEN_AREA} sq ft",
        )


def _check_has_zones(garden: Garden) -> None:
    if not garden.zones:
        raise ValidationFailure(
            ValidationCode.NO_ZONES,
            [garden.id],
            "Garden must have at least one zone",
        )


def _check_zones_valid(garden: Garden) -> None:
    seen = set()
    for zone in garden.zones:
        if not zone.validate():
            raise ValidationFailure(
                ValidationCode.INVALID_ZONE,
                [zone.id],
                f"Zone {zone.id} needs area > 0 and sunlight within [0, 24] hours "
                f"(area={zone.area}, sunlight={zone.sunlight_hours_available})",
            )
        if zone.id in seen:
            raise ValidationFailure(
                ValidationCode.DUPLICATE_ZONE_ID,
                [zone.id],
                f"Zone id {zone.id} appears more than once",
            )
        seen.add(zone.id)


def _check_zone_area_total(garden: Garden) -> None:
    total = sum(zone.area for zone in garden.zones)
    if total > garden.area + AREA_TOLERANCE:
        raise ValidationFailure(
            ValidationCode.ZONE_AREA_EXCEEDS_GARDEN,
            [garden.id] + [zone.id for zone in garden.zones],
            f"Total zone area {total:.2f} sq ft exceeds garden area {garden.area} sq ft",
        )


def _check_plants_valid(garden: Garden) -> None:
    seen = set()
    for plant in garden.plants:
        issues = plant.validation_errors()
        if issues:
            raise ValidationFailure(
                ValidationCode.INVALID_PLANT,
                [plant.id],
                f"Plant {plant.id}: " + "; ".join(issues),
            )
        if plant.id in seen:
            raise ValidationFailure(
                ValidationCode.DUPLICATE_PLANT_ID,
                [plant.id],
                f"Plant id {plant.id} appears more than once",
            )
        seen.add(plant.id)


def _check_no_incompatible_pairs(garden: Garden) -> None:
    pairs = CompatibilityModel(garden.plants).conflicting_pairs()
    if pairs:
        first, second = pairs[0]
        raise ValidationFailure(
            ValidationCode.INCOMPATIBLE_PLANTS,
            [first, second],
            f"Plants {first} and {second} cannot be grown in the same garden",
        )


def _check_plant_space(garden: Garden) -> None:
    total = sum(required_area(plant) for plant in garden.plants)
    if total > garden.area + AREA_TOLERANCE:
        raise ValidationFailure(
            ValidationCode.PLANT_SPACE_EXCEEDS_AREA,
            [garden.id] + [plant.id for plant in garden.plants],
            f"Plants need {total:.2f} sq ft but the garden only has {garden.area} sq ft",
        )


INVARIANT_CHECKS = (
    _check_garden_area,
    _check_has_zones,
    _check_zones_valid,
    _check_zone_area_total,
    _check_plants_valid,
    _check_no_incompatible_pairs,
    _check_plant_space,
)


# =============================================================================
# WARNINGS
# =============================================================================

def declaration_warnings(garden: Garden) -> List[str]:
    """Incompatibilities declared in one direction only. Safe on invalid gardens."""
    return [
        f"Plant {declarer} lists {target} as incompatible but {target} does not list "
        f"{declarer}; treating them as incompatible"
        for declarer, target in asymmetric_declarations(garden.plants)
    ]


def collect_warnings(garden: Garden, min_zone_size: Optional[float] = None) -> List[str]:
    """Non-fatal findings that need a garden which already passed validation."""
    warnings = []

    needs_full_sun = [p.id for p in garden.plants if p.sunlight_hours_needed >= FULL_SUN_HOURS]
    has_full_sun = any(z.sunlight_hours_available >= FULL_SUN_HOURS for z in garden.zones)
    if needs_full_sun and garden.zones and not has_full_sun:
        warnings.append(
            f"No zone gets {FULL_SUN_HOURS}+ hours of sun but plants {sorted(needs_full_sun)} need it"
        )

    covered = usable_area(garden)
    if covered < garden.area - AREA_TOLERANCE:
        warnings.append(
            f"Zones cover {covered:.2f} of {garden.area} sq ft; add or enlarge zones to plant "
            f"the remaining {garden.area - covered:.2f} sq ft"
        )

    if min_zone_size is not None:
        for zone in garden.zones:
            if zone.area < min_zone_size:
                warnings.append(
                    f"Zone {zone.id} ({zone.area} sq ft) is below the minimum zone size "
                    f"{min_zone_size} sq ft and will not receive plants"
                )

    return warnings


# =============================================================================
# PUBLIC API
# =============================================================================

def validate_garden(garden: Garden, min_zone_size: Optional[float] = None) -> ValidationReport:
    """
    Validate a garden against all invariants, fail-fast.

    Args:
        garden: Garden snapshot to check
        min_zone_size: Optional minimum zone size, only used for warnings

    Returns:
        ValidationReport with the first failure (if any) and warnings
    """
    warnings = declaration_warnings(garden)
    try:
        for check in INVARIANT_CHECKS:
            check(garden)
    except ValidationFailure as failure:
        return ValidationReport(failure=failure, warnings=warnings)

    warnings.extend(collect_warnings(garden, min_zone_size))
    return ValidationReport(warnings=warnings)


def ensure_valid(garden: Garden, min_zone_size: Optional[float] = None) -> ValidationReport:
    """Validate and raise the ValidationFailure if the garden is invalid."""
    report = validate_garden(garden, min_zone_size)
    for warning in report.warnings:
        logger.warning(f"Garden {garden.id}: {warning}")
    if report.failure is not None:
        raise report.failure
    return report

