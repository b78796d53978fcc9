import itertools
from datetime import datetime, timezone

import pytest

from garden_planner.services import (
    Garden,
    Layout,
    OptimizationFailure,
    OptimizationParams,
    PlantAllocation,
    UnplacedUnits,
    ValidationCode,
    ValidationFailure,
    optimize,
    verify_layout,
    zones_with_assignments,
)
from garden_planner.services import zone_assignment

from conftest import make_plant, make_zone


# =============================================================================
# SCENARIOS
# =============================================================================

def test_simple_fit():
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("z1", 50, sunlight=8)],
        plants=[make_plant("p", spacing=2, quantity=4, sunlight=6)],
    )
    layout = optimize(garden)

    assert dict(layout.zone_assignments) == {"z1": (PlantAllocation("p", 4),)}
    assert layout.space_utilization == 38.4
    assert layout.garden_utilization == 19.2
    assert layout.zone_utilization["z1"] == 38.4
    assert layout.achieved_target_utilization is False
    assert layout.timed_out is False
    assert layout.unplaced_units == ()


def test_incompatible_garden_is_never_optimized(monkeypatch):
    calls = []
    monkeypatch.setattr(zone_assignment, "_run", lambda *args: calls.append(args))
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("z1", 50)],
        plants=[make_plant("a", incompatible=["b"]), make_plant("b")],
    )

    with pytest.raises(ValidationFailure) as exc_info:
        optimize(garden)

    assert exc_info.value.code == ValidationCode.INCOMPATIBLE_PLANTS
    assert set(exc_info.value.entity_ids) == {"a", "b"}
    assert calls == []


def test_area_overflow_fails_validation():
    garden = Garden(
        id="g",
        area=10,
        zones=[make_zone("z1", 10)],
        plants=[make_plant("p", spacing=2, quantity=4)],
    )
    with pytest.raises(ValidationFailure) as exc_info:
        optimize(garden)
    assert exc_info.value.code == ValidationCode.PLANT_SPACE_EXCEEDS_AREA


def test_partial_placement():
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("z1", 10), make_zone("z2", 10)],
        plants=[
            make_plant("big", spacing=2, quantity=4),    # 4.8 sq ft per unit
            make_plant("small", spacing=1, quantity=1),  # 1.2 sq ft
        ],
    )
    layout = optimize(garden)

    assert dict(layout.zone_assignments) == {
        "z1": (PlantAllocation("big", 2),),
        "z2": (PlantAllocation("big", 2),),
    }
    assert layout.unplaced_units == (UnplacedUnits("small", 1, "NO_ELIGIBLE_ZONE"),)
    assert "small" not in layout.plant_ids_in_zone("z1") + layout.plant_ids_in_zone("z2")
    assert layout.space_utilization == 96.0
    assert layout.achieved_target_utilization is False


# =============================================================================
# PROPERTIES
# =============================================================================

def test_layout_is_consistent_with_garden(two_zone_garden):
    layout = optimize(two_zone_garden)

    assert verify_layout(layout, two_zone_garden) == []
    assert 0 <= layout.space_utilization <= 100
    assert 0 <= layout.garden_utilization <= 100
    assert set(layout.zone_assignments) == {"sunny", "shady"}

    placed = layout.placed_unit_count + layout.unplaced_unit_count
    assert placed == sum(p.quantity for p in two_zone_garden.plants)


def test_sunlight_needs_are_respected(two_zone_garden):
    layout = optimize(two_zone_garden)
    for plant_id in layout.plant_ids_in_zone("shady"):
        assert plant_id == "lettuce"


def test_optimize_is_deterministic(two_zone_garden):
    first = optimize(two_zone_garden)
    second = optimize(two_zone_garden)

    assert dict(first.zone_assignments) == dict(second.zone_assignments)
    assert first.unplaced_units == second.unplaced_units
    assert first.space_utilization == second.space_utilization


def test_largest_units_are_placed_first(simple_garden):
    layout = optimize(simple_garden)
    assert layout.plant_ids_in_zone("z1") == ("tomato", "basil")


def test_target_is_met_when_everything_fits():
    garden = Garden(
        id="g",
        area=20,
        zones=[make_zone("z1", 20)],
        plants=[make_plant("p", spacing=2, quantity=4)],  # 19.2 sq ft
    )
    layout = optimize(garden)

    assert layout.space_utilization == 96.0
    assert layout.achieved_target_utilization is True


def test_min_zone_size_excludes_small_zones():
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("big", 50), make_zone("tiny", 3)],
        plants=[make_plant("herb", spacing=1, quantity=2)],
    )
    layout = optimize(garden, OptimizationParams(min_zone_size=4))

    assert layout.zone_assignments["tiny"] == ()
    assert layout.plant_ids_in_zone("big") == ("herb",)


# =============================================================================
# TOLERANCE BAND
# =============================================================================

def shady_garden():
    return Garden(
        id="shade",
        area=50,
        zones=[make_zone("z1", 20, sunlight=6)],
        plants=[make_plant("melon", spacing=2, quantity=1, sunlight=8)],
    )


def test_no_tolerance_means_exact_sunlight_match():
    layout = optimize(shady_garden())

    assert layout.placed_unit_count == 0
    assert layout.unplaced_units == (UnplacedUnits("melon", 1, "NO_ELIGIBLE_ZONE"),)
    assert layout.tolerance_placements == ()


def test_tolerance_band_places_and_records_deficit():
    layout = optimize(shady_garden(), OptimizationParams(sunlight_tolerance_hours=2))

    assert layout.plant_ids_in_zone("z1") == ("melon",)
    assert len(layout.tolerance_placements) == 1
    placement = layout.tolerance_placements[0]
    assert (placement.zone_id, placement.plant_id, placement.count) == ("z1", "melon", 1)
    assert placement.deficit_hours == 2.0


def test_tolerance_is_never_exceeded():
    layout = optimize(shady_garden(), OptimizationParams(sunlight_tolerance_hours=1.5))
    assert layout.placed_unit_count == 0


def test_exact_match_beats_tolerance_even_with_worse_fit():
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("dim", 5, sunlight=7), make_zone("bright", 60, sunlight=8)],
        plants=[make_plant("melon", spacing=2, quantity=1, sunlight=8)],
    )
    layout = optimize(garden, OptimizationParams(sunlight_tolerance_hours=2))

    assert layout.plant_ids_in_zone("bright") == ("melon",)
    assert layout.tolerance_placements == ()


# =============================================================================
# COMPANION TIE-BREAK
# =============================================================================

def companion_garden():
    # After squash takes b-sunny the two zones have equal room for the herb
    return Garden(
        id="companions",
        area=30,
        zones=[make_zone("b-sunny", 14.8, sunlight=8), make_zone("a-shade", 10, sunlight=4)],
        plants=[
            make_plant("squash", spacing=2, quantity=1, sunlight=8, companions=["herb"]),
            make_plant("herb", spacing=1, quantity=1, sunlight=3),
        ],
    )


def test_companions_break_best_fit_ties():
    layout = optimize(companion_garden())
    assert layout.plant_ids_in_zone("b-sunny") == ("squash", "herb")


def test_zone_id_breaks_ties_without_companion_preference():
    layout = optimize(companion_garden(), OptimizationParams(use_companion_tiebreak=False))
    assert layout.plant_ids_in_zone("a-shade") == ("herb",)


# =============================================================================
# TIME BUDGET
# =============================================================================

def test_soft_deadline_returns_partial_layout():
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("z1", 50)],
        plants=[make_plant("p", spacing=2, quantity=4)],
    )
    # One simulated second per clock read; budget allows two unit placements
    clock = itertools.count().__next__
    layout = optimize(garden, OptimizationParams(time_budget_ms=2500), clock=clock)

    assert layout.timed_out is True
    assert layout.zone_assignments["z1"] == (PlantAllocation("p", 2),)
    assert layout.unplaced_units == (UnplacedUnits("p", 2, "TIMED_OUT"),)
    assert layout.achieved_target_utilization is False


def test_largest_garden_finishes_within_budget():
    # 1000 one-square-foot zones, each holding 13 units of 0.075 sq ft
    garden = Garden(
        id="g-max",
        area=1000,
        zones=[make_zone(f"z{i:04d}", 1) for i in range(1000)],
        plants=[make_plant("cress", spacing=0.25, quantity=13000)],
    )
    layout = optimize(garden)

    assert layout.timed_out is False
    assert layout.unplaced_units == ()
    assert layout.placed_unit_count == 13000
    assert all(allocations == (PlantAllocation("cress", 13),)
               for allocations in layout.zone_assignments.values())


def test_plant_fills_its_zone_before_moving_on():
    garden = Garden(
        id="g",
        area=30,
        zones=[make_zone("a", 10), make_zone("b", 10), make_zone("c", 10)],
        plants=[make_plant("kale", spacing=2, quantity=5), make_plant("chive", spacing=1, quantity=3)],
    )
    layout = optimize(garden)

    # kale: 4.8 sq ft each, two per zone; chive then fills the tightest leftover
    assert dict(layout.zone_assignments) == {
        "a": (PlantAllocation("kale", 2),),
        "b": (PlantAllocation("kale", 2),),
        "c": (PlantAllocation("kale", 1), PlantAllocation("chive", 3)),
    }


# =============================================================================
# FAILURES AND HELPERS
# =============================================================================

def test_internal_errors_are_wrapped(simple_garden, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("zone state corrupted")

    monkeypatch.setattr(zone_assignment, "select_zone", broken)

    with pytest.raises(OptimizationFailure) as exc_info:
        optimize(simple_garden)

    assert exc_info.value.garden_id == "g-simple"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_verify_layout_flags_conflicts_and_capacity():
    garden = Garden(
        id="g",
        area=100,
        zones=[make_zone("z1", 5)],
        plants=[make_plant("a", incompatible=["b"]), make_plant("b")],
    )
    layout = Layout(
        garden_id="g",
        zone_assignments={"z1": [PlantAllocation("a", 1), PlantAllocation("b", 1)]},
        space_utilization=100.0,
        zone_utilization={"z1": 100.0},
        generated_at=datetime.now(timezone.utc),
        target_utilization_percent=92,
        achieved_target_utilization=True,
    )
    issues = verify_layout(layout, garden)

    assert any("conflicts" in issue for issue in issues)
    assert any("over capacity" in issue for issue in issues)


def test_zones_with_assignments(simple_garden):
    layout = optimize(simple_garden)
    zones = zones_with_assignments(simple_garden, layout)

    assert zones[0].assigned_plant_ids == ("tomato", "basil")
    assert simple_garden.zones[0].assigned_plant_ids == ()


def test_layout_dict_round_trip(two_zone_garden):
    layout = optimize(two_zone_garden)
    restored = Layout.from_dict(layout.to_dict())

    assert restored.to_dict() == layout.to_dict()
