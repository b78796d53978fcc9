from garden_planner.services import (
    CompatibilityModel,
    asymmetric_declarations,
    conflicts,
    synergy,
)

from conftest import make_plant


def test_conflict_declared_on_one_side_counts_both_ways():
    a = make_plant("a", incompatible=["b"])
    b = make_plant("b")

    assert conflicts(a, b)
    assert conflicts(b, a)


def test_plant_never_conflicts_with_itself():
    a = make_plant("a")
    assert not conflicts(a, a)
    assert not synergy(a, a)


def test_synergy_is_independent_of_conflicts():
    tomato = make_plant("tomato", companions=["basil"])
    basil = make_plant("basil")
    carrot = make_plant("carrot")

    assert synergy(tomato, basil)
    assert synergy(basil, tomato)
    assert not synergy(tomato, carrot)
    assert not conflicts(tomato, basil)


def test_asymmetric_declarations_only_reports_present_plants():
    plants = [
        make_plant("a", incompatible=["b", "missing"]),
        make_plant("b"),
        make_plant("c", incompatible=["d"]),
        make_plant("d", incompatible=["c"]),
    ]
    assert asymmetric_declarations(plants) == [("a", "b")]


def test_model_is_symmetric_and_ignores_unknown_ids():
    model = CompatibilityModel([
        make_plant("a", incompatible=["b", "ghost"], companions=["c"]),
        make_plant("b"),
        make_plant("c"),
    ])

    assert model.conflicts("a", "b")
    assert model.conflicts("b", "a")
    assert not model.conflicts("a", "ghost")
    assert model.conflict_ids("b") == frozenset({"a"})
    assert model.conflicting_pairs() == [("a", "b")]


def test_model_zone_checks():
    model = CompatibilityModel([
        make_plant("tomato", companions=["basil", "marigold"]),
        make_plant("basil"),
        make_plant("marigold"),
        make_plant("fennel", incompatible=["tomato"]),
    ])

    assert model.conflicts_with_any("fennel", ["basil", "tomato"])
    assert not model.conflicts_with_any("fennel", ["basil"])
    assert not model.conflicts_with_any("basil", [])
    assert model.synergy_score("tomato", ["basil", "marigold", "fennel"]) == 2
    assert model.synergy_score("basil", {"tomato": 3}) == 1
