# backend/garden_planner/services/__init__.py
# Garden layout optimization services

from .garden_entities import (
    Plant,
    Zone,
    Garden,
    Layout,
    OptimizationParams,
    PlantAllocation,
    UnplacedUnits,
    TolerancePlacement,
    sunlight_condition,
    UNPLACED_NO_ELIGIBLE_ZONE,
    UNPLACED_TIMED_OUT
)

from .compatibility import (
    conflicts,
    synergy,
    asymmetric_declarations,
    CompatibilityModel
)

from .space_accounting import (
    required_area,
    unit_area,
    zone_utilization,
    garden_utilization,
    space_utilization,
    usable_area,
    layout_zone_utilization,
    layout_garden_utilization,
    layout_space_utilization,
    round_half_up,
    ACCESSIBILITY_BUFFER
)

from .garden_validation import (
    validate_garden,
    ensure_valid,
    ValidationCode,
    ValidationFailure,
    ValidationReport
)

from .zone_assignment import (
    optimize,
    verify_layout,
    zones_with_assignments,
    OptimizationFailure
)

from .layout_cache import (
    garden_fingerprint,
    LayoutCoordinator,
    CacheCoordinationFailure
)

__all__ = [
    # Entities
    'Plant',
    'Zone',
    'Garden',
    'Layout',
    'OptimizationParams',
    'PlantAllocation',
    'UnplacedUnits',
    'TolerancePlacement',
    'sunlight_condition',

    # Compatibility
    'conflicts',
    'synergy',
    'asymmetric_declarations',
    'CompatibilityModel',

    # Space Accounting
    'required_area',
    'unit_area',
    'zone_utilization',
    'garden_utilization',
    'space_utilization',
    'usable_area',
    'layout_zone_utilization',
    'layout_garden_utilization',
    'layout_space_utilization',
    'round_half_up',

    # Validation
    'validate_garden',
    'ensure_valid',
    'ValidationCode',
    'ValidationFailure',
    'ValidationReport',

    # Zone Assignment
    'optimize',
    'verify_layout',
    'zones_with_assignments',
    'OptimizationFailure',

    # Layout Cache
    'garden_fingerprint',
    'LayoutCoordinator',
    'CacheCoordinationFailure',
]
