import os

# Must be set before garden_planner.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from garden_planner.services import Garden, Plant, Zone


def make_plant(plant_id, spacing=2.0, quantity=1, sunlight=6, days=60,
               companions=(), incompatible=(), plant_type=None):
    return Plant(
        id=plant_id,
        type=plant_type or plant_id,
        spacing_side_length=spacing,
        quantity=quantity,
        sunlight_hours_needed=sunlight,
        days_to_maturity=days,
        companion_plant_ids=companions,
        incompatible_plant_ids=incompatible,
    )


def make_zone(zone_id, area, sunlight=8, name=None):
    return Zone(id=zone_id, area=area, sunlight_hours_available=sunlight, name=name)


@pytest.fixture
def simple_garden():
    """100 sq ft, one sunny zone; tomato 2x2 x4 and basil 1x1 x12 need 33.6 sq ft."""
    return Garden(
        id="g-simple",
        area=100,
        zones=[make_zone("z1", 100, sunlight=8)],
        plants=[
            make_plant("tomato", spacing=2, quantity=4, sunlight=8, companions=["basil"]),
            make_plant("basil", spacing=1, quantity=12, sunlight=6),
        ],
    )


@pytest.fixture
def two_zone_garden():
    """Sunny and shady zone; only lettuce tolerates the shade."""
    return Garden(
        id="g-two",
        area=100,
        zones=[
            make_zone("sunny", 40, sunlight=8),
            make_zone("shady", 40, sunlight=3),
        ],
        plants=[
            make_plant("pepper", spacing=1.5, quantity=6, sunlight=7),
            make_plant("lettuce", spacing=1, quantity=10, sunlight=3),
            make_plant("onion", spacing=0.5, quantity=20, sunlight=6),
            make_plant("bean", spacing=1, quantity=5, sunlight=6),
        ],
    )


@pytest.fixture
def garden_payload():
    return {
        "name": "Backyard",
        "area": 100,
        "zones": [
            {"id": "z1", "name": "Bed A", "area": 60, "sunlight_hours_available": 8},
            {"id": "z2", "name": "Bed B", "area": 30, "sunlight_hours_available": 4},
        ],
        "plants": [
            {
                "id": "tomato",
                "type": "tomato",
                "spacing_side_length": 2,
                "quantity": 4,
                "sunlight_hours_needed": 8,
                "days_to_maturity": 70,
                "companion_plant_ids": ["basil"],
            },
            {
                "id": "basil",
                "type": "basil",
                "spacing_side_length": 1,
                "quantity": 12,
                "sunlight_hours_needed": 6,
                "days_to_maturity": 30,
            },
        ],
    }


@pytest.fixture
def client():
    from garden_planner.database import Base, engine
    from garden_planner.main import app

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)
