import logging

import pytest

from garden_planner.analytics import GardenEvent, analytics
from garden_planner.services import optimize


def events(caplog):
    return [r for r in caplog.records if r.name == "garden_planner.analytics"]


def test_event_names_are_typed(caplog):
    with caplog.at_level(logging.INFO, logger="garden_planner.analytics"):
        analytics.track_event("garden_deleted", "g-1", {"name": "Backyard"})

    record, = events(caplog)
    assert record.event == GardenEvent.GARDEN_DELETED.value
    assert record.garden_id == "g-1"
    assert record.properties == {"name": "Backyard"}


def test_unknown_event_name_is_rejected():
    with pytest.raises(ValueError):
        analytics.track_event("garden_renamed", "g-1")


def test_garden_created_summarizes_the_garden(simple_garden, caplog):
    with caplog.at_level(logging.INFO, logger="garden_planner.analytics"):
        analytics.garden_created(simple_garden)

    record, = events(caplog)
    assert record.event == "garden_created"
    assert record.properties == {"area": 100, "zones": 1, "plants": 2, "units": 16}


def test_layout_generated_flags_best_effort_results(simple_garden, caplog):
    layout = optimize(simple_garden)

    with caplog.at_level(logging.INFO, logger="garden_planner.analytics"):
        analytics.layout_generated(layout, layout_id=7)

    record, = events(caplog)
    assert record.garden_id == "g-simple"
    assert record.properties["layout_id"] == 7
    assert record.properties["achieved_target_utilization"] is False
    assert record.properties["placed_units"] == 16
    assert record.properties["unplaced_units"] == 0
    assert record.properties["timed_out"] is False
