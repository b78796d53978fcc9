# backend/garden_planner/routers/gardens.py
# Gardens router: CRUD, validation and layout optimization
# Gardens are validated before every write; optimization goes through the
# process-wide layout coordinator so identical requests share one run.

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List, Optional
import json
import logging

from .. import config, models, schemas
from ..database import get_db
from ..analytics import GardenEvent, analytics
from ..services import (
    Garden,
    Layout,
    LayoutCoordinator,
    OptimizationParams,
    Plant,
    ValidationFailure,
    Zone,
    ensure_valid,
    validate_garden,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/gardens", tags=["gardens"])


# =============================================================================
# HELPERS
# =============================================================================

def get_layout_coordinator(request: Request) -> LayoutCoordinator:
    """Process-wide coordinator created in the app lifespan."""
    return request.app.state.layout_coordinator


def zone_snapshot(zone: schemas.ZoneCreate) -> Zone:
    return Zone(
        id=zone.id,
        name=zone.name,
        area=zone.area,
        sunlight_hours_available=zone.sunlight_hours_available,
    )


def plant_snapshot(plant: schemas.PlantCreate) -> Plant:
    spacing = plant.spacing_side_length
    if spacing is None:
        spacing = config.DEFAULT_SPACING
    return Plant(
        id=plant.id,
        type=plant.type,
        spacing_side_length=spacing,
        quantity=plant.quantity,
        sunlight_hours_needed=plant.sunlight_hours_needed,
        days_to_maturity=plant.days_to_maturity,
        companion_plant_ids=plant.companion_plant_ids,
        incompatible_plant_ids=plant.incompatible_plant_ids,
    )


def snapshot_from_record(db_garden: models.Garden) -> Garden:
    """Immutable core snapshot of a stored garden."""
    return Garden(
        id=db_garden.id,
        name=db_garden.name,
        area=db_garden.area,
        zones=[
            Zone(
                id=z.zone_id,
                name=z.name,
                area=z.area,
                sunlight_hours_available=z.sunlight_hours_available,
            )
            for z in db_garden.zones
        ],
        plants=[
            Plant(
                id=p.plant_id,
                type=p.type,
                spacing_side_length=p.spacing_side_length,
                quantity=p.quantity,
                sunlight_hours_needed=p.sunlight_hours_needed,
                days_to_maturity=p.days_to_maturity,
                companion_plant_ids=p.companion_plant_ids or [],
                incompatible_plant_ids=p.incompatible_plant_ids or [],
            )
            for p in db_garden.plants
        ],
    )


def apply_snapshot(db_garden: models.Garden, snapshot: Garden) -> None:
    """Overwrite a garden record's fields and children from a snapshot."""
    db_garden.name = snapshot.name
    db_garden.area = snapshot.area
    db_garden.zones = [
        models.GardenZone(
            zone_id=zone.id,
            position=position,
            name=zone.name,
            area=zone.area,
            sunlight_hours_available=zone.sunlight_hours_available,
        )
        for position, zone in enumerate(snapshot.zones)
    ]
    db_garden.plants = [
        models.GardenPlant(
            plant_id=plant.id,
            position=position,
            type=plant.type,
            spacing_side_length=plant.spacing_side_length,
            quantity=plant.quantity,
            sunlight_hours_needed=plant.sunlight_hours_needed,
            days_to_maturity=plant.days_to_maturity,
            companion_plant_ids=sorted(plant.companion_plant_ids),
            incompatible_plant_ids=sorted(plant.incompatible_plant_ids),
        )
        for position, plant in enumerate(snapshot.plants)
    ]


def garden_response(db_garden: models.Garden) -> dict:
    snapshot = snapshot_from_record(db_garden)
    return {
        "id": db_garden.id,
        "name": db_garden.name,
        "area": db_garden.area,
        "zones": [
            {
                "id": zone.id,
                "name": zone.name,
                "area": zone.area,
                "sunlight_hours_available": zone.sunlight_hours_available,
                "sunlight_condition": zone.sunlight_condition,
            }
            for zone in snapshot.zones
        ],
        "plants": [
            {
                "id": plant.id,
                "type": plant.type,
                "spacing_side_length": plant.spacing_side_length,
                "quantity": plant.quantity,
                "sunlight_hours_needed": plant.sunlight_hours_needed,
                "days_to_maturity": plant.days_to_maturity,
                "companion_plant_ids": sorted(plant.companion_plant_ids),
                "incompatible_plant_ids": sorted(plant.incompatible_plant_ids),
            }
            for plant in snapshot.plants
        ],
        "created_at": db_garden.created_at,
        "updated_at": db_garden.updated_at,
    }


def require_valid(snapshot: Garden) -> None:
    """Raise ValidationFailure (rendered as 422) if the snapshot is invalid."""
    try:
        ensure_valid(snapshot, config.MIN_ZONE_SIZE)
    except ValidationFailure as e:
        logger.info(f"Garden {snapshot.id} rejected: {e}")
        raise


def get_garden_or_404(garden_id: str, db: Session) -> models.Garden:
    db_garden = db.query(models.Garden).filter(models.Garden.id == garden_id).first()
    if not db_garden:
        raise HTTPException(status_code=404, detail="Garden not found")
    return db_garden


def build_params(request: Optional[schemas.OptimizeRequest]) -> OptimizationParams:
    """Configured defaults overridden by whatever the request sets."""
    overrides = request.dict(exclude_unset=True) if request else {}
    return OptimizationParams.from_config(**overrides)


def store_layout(db: Session, garden_id: str, layout: Layout) -> models.GardenLayout:
    """Persist a layout unless it is identical to the latest stored one."""
    layout_data = json.dumps(layout.to_dict(), sort_keys=True)

    latest = db.query(models.GardenLayout).filter(
        models.GardenLayout.garden_id == garden_id
    ).order_by(models.GardenLayout.id.desc()).first()
    if latest and latest.layout_data == layout_data:
        return latest

    db_layout = models.GardenLayout(
        garden_id=garden_id,
        layout_data=layout_data,
        space_utilization=layout.space_utilization,
        garden_utilization=layout.garden_utilization,
        target_utilization_percent=layout.target_utilization_percent,
        achieved_target_utilization=layout.achieved_target_utilization,
        timed_out=layout.timed_out,
        unplaced_unit_count=layout.unplaced_unit_count,
        generated_at=layout.generated_at,
    )
    db.add(db_layout)
    db.commit()
    db.refresh(db_layout)
    return db_layout


# =============================================================================
# GARDENS
# =============================================================================

@router.post("/", response_model=schemas.GardenResponse, status_code=status.HTTP_201_CREATED)
async def create_garden(
    garden: schemas.GardenCreate,
    db: Session = Depends(get_db)
):
    """Create a garden. Rejected with a structured 422 if any invariant fails."""
    garden_id = models.new_garden_id()
    snapshot = Garden(
        id=garden_id,
        name=garden.name,
        area=garden.area,
        zones=[zone_snapshot(z) for z in garden.zones],
        plants=[plant_snapshot(p) for p in garden.plants],
    )
    require_valid(snapshot)

    db_garden = models.Garden(id=garden_id)
    apply_snapshot(db_garden, snapshot)
    db.add(db_garden)
    db.commit()
    db.refresh(db_garden)

    analytics.garden_created(snapshot)

    return garden_response(db_garden)


@router.post("/validate", response_model=schemas.ValidationReportResponse)
async def validate_garden_payload(garden: schemas.GardenCreate):
    """Dry-run validation of an unsaved garden."""
    snapshot = Garden(
        id="draft",
        name=garden.name,
        area=garden.area,
        zones=[zone_snapshot(z) for z in garden.zones],
        plants=[plant_snapshot(p) for p in garden.plants],
    )
    return validate_garden(snapshot, config.MIN_ZONE_SIZE).to_dict()


@router.get("/", response_model=List[schemas.GardenResponse])
async def list_gardens(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """List gardens, newest first."""
    gardens = db.query(models.Garden).order_by(
        models.Garden.created_at.desc()
    ).offset(skip).limit(limit).all()

    return [garden_response(g) for g in gardens]


@router.get("/{garden_id}", response_model=schemas.GardenResponse)
async def get_garden(
    garden_id: str,
    db: Session = Depends(get_db)
):
    """Get a specific garden by ID."""
    return garden_response(get_garden_or_404(garden_id, db))


@router.put("/{garden_id}", response_model=schemas.GardenResponse)
async def update_garden(
    garden_id: str,
    garden_update: schemas.GardenUpdate,
    request: Request,
    db: Session = Depends(get_db)
):
    """Replace a garden's name, area, zones or plants. Drops its cached layouts."""
    db_garden = get_garden_or_404(garden_id, db)
    current = snapshot_from_record(db_garden)
    update_data = garden_update.dict(exclude_unset=True)

    snapshot = Garden(
        id=garden_id,
        name=garden_update.name if "name" in update_data else current.name,
        area=garden_update.area if garden_update.area is not None else current.area,
        zones=(
            [zone_snapshot(z) for z in garden_update.zones]
            if garden_update.zones is not None else current.zones
        ),
        plants=(
            [plant_snapshot(p) for p in garden_update.plants]
            if garden_update.plants is not None else current.plants
        ),
    )
    require_valid(snapshot)

    apply_snapshot(db_garden, snapshot)
    db.commit()
    db.refresh(db_garden)

    get_layout_coordinator(request).invalidate(garden_id)

    analytics.track_event(GardenEvent.GARDEN_UPDATED, garden_id, {
        "updated_fields": list(update_data.keys())
    })

    return garden_response(db_garden)


@router.delete("/{garden_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_garden(
    garden_id: str,
    request: Request,
    db: Session = Depends(get_db)
):
    """Delete a garden with its zones, plants and stored layouts."""
    db_garden = get_garden_or_404(garden_id, db)

    analytics.track_event(GardenEvent.GARDEN_DELETED, garden_id, {
        "name": db_garden.name
    })

    db.delete(db_garden)
    db.commit()
    get_layout_coordinator(request).invalidate(garden_id)

    return None


@router.post("/{garden_id}/validate", response_model=schemas.ValidationReportResponse)
async def validate_stored_garden(
    garden_id: str,
    db: Session = Depends(get_db)
):
    """Re-run invariant checks on a stored garden and report warnings."""
    db_garden = get_garden_or_404(garden_id, db)
    report = validate_garden(snapshot_from_record(db_garden), config.MIN_ZONE_SIZE)
    return report.to_dict()


# =============================================================================
# LAYOUTS
# =============================================================================

@router.post("/{garden_id}/optimize", response_model=schemas.LayoutResponse)
async def optimize_garden(
    garden_id: str,
    request: Request,
    optimize_request: Optional[schemas.OptimizeRequest] = None,
    db: Session = Depends(get_db)
):
    """
    Generate (or reuse) a layout for a garden and store it.

    A layout that misses the utilization target or leaves units unplaced is
    still a 200; callers read achieved_target_utilization and unplaced_units.
    """
    db_garden = get_garden_or_404(garden_id, db)
    snapshot = snapshot_from_record(db_garden)
    params = build_params(optimize_request)
    coordinator = get_layout_coordinator(request)

    try:
        layout = await run_in_threadpool(coordinator.get_layout, snapshot, params)
    except ValidationFailure as e:
        logger.info(f"Garden {garden_id} cannot be optimized: {e}")
        raise

    db_layout = store_layout(db, garden_id, layout)

    analytics.layout_generated(layout, db_layout.id)

    return layout.to_dict()


@router.get("/{garden_id}/layouts/latest", response_model=schemas.LayoutResponse)
async def get_latest_layout(
    garden_id: str,
    db: Session = Depends(get_db)
):
    """Most recently stored layout of a garden."""
    get_garden_or_404(garden_id, db)

    latest = db.query(models.GardenLayout).filter(
        models.GardenLayout.garden_id == garden_id
    ).order_by(models.GardenLayout.id.desc()).first()

    if not latest:
        raise HTTPException(status_code=404, detail="No layout generated yet")

    return Layout.from_dict(json.loads(latest.layout_data)).to_dict()
