from pydantic import BaseModel, Field, validator
from typing import Dict, List, Optional
from datetime import datetime
from enum import Enum

from .validators import GardenValidators


class SunlightConditionEnum(str, Enum):
    FULL_SUN = "FULL_SUN"
    PARTIAL_SHADE = "PARTIAL_SHADE"
    FULL_SHADE = "FULL_SHADE"


class UnplacedReasonEnum(str, Enum):
    NO_ELIGIBLE_ZONE = "NO_ELIGIBLE_ZONE"
    TIMED_OUT = "TIMED_OUT"


# Zone Schemas
class ZoneBase(BaseModel):
    id: str
    name: Optional[str] = None
    area: float
    sunlight_hours_available: float

    @validator('id')
    def validate_id(cls, v):
        return GardenValidators.validate_identifier(v)

    @validator('name')
    def validate_name(cls, v):
        return GardenValidators.validate_name(v)


class ZoneCreate(ZoneBase):
    pass


class ZoneResponse(ZoneBase):
    sunlight_condition: SunlightConditionEnum


# Plant Schemas
class PlantBase(BaseModel):
    id: str
    type: str = Field(..., min_length=1, max_length=100)
    spacing_side_length: Optional[float] = None  # feet; DEFAULT_SPACING fills it when unset
    quantity: int
    sunlight_hours_needed: float
    days_to_maturity: int
    companion_plant_ids: List[str] = []
    incompatible_plant_ids: List[str] = []

    @validator('id')
    def validate_id(cls, v):
        return GardenValidators.validate_identifier(v)

    @validator('companion_plant_ids', 'incompatible_plant_ids')
    def validate_related_ids(cls, v):
        return GardenValidators.validate_id_list(v)


class PlantCreate(PlantBase):
    pass


class PlantResponse(PlantBase):
    pass


# Garden Schemas
class GardenBase(BaseModel):
    name: Optional[str] = None
    area: float  # sq ft

    @validator('name')
    def validate_name(cls, v):
        return GardenValidators.validate_name(v)


class GardenCreate(GardenBase):
    zones: List[ZoneCreate] = []
    plants: List[PlantCreate] = []


class GardenUpdate(BaseModel):
    name: Optional[str] = None
    area: Optional[float] = None
    zones: Optional[List[ZoneCreate]] = None
    plants: Optional[List[PlantCreate]] = None

    @validator('name')
    def validate_name(cls, v):
        return GardenValidators.validate_name(v)


class GardenResponse(GardenBase):
    id: str
    zones: List[ZoneResponse]
    plants: List[PlantResponse]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Validation Schemas
class ValidationFailureResponse(BaseModel):
    code: str
    entity_ids: List[str]
    message: str


class ValidationReportResponse(BaseModel):
    valid: bool
    failure: Optional[ValidationFailureResponse] = None
    warnings: List[str] = []


# Optimization Schemas
class OptimizeRequest(BaseModel):
    target_utilization_percent: Optional[float] = Field(None, ge=0, le=100)
    min_zone_size: Optional[float] = Field(None, gt=0)
    time_budget_ms: Optional[int] = Field(None, gt=0, le=60000)
    sunlight_tolerance_hours: Optional[float] = Field(None, ge=0, le=24)
    use_companion_tiebreak: Optional[bool] = None


class PlantAllocationResponse(BaseModel):
    plant_id: str
    count: int


class UnplacedUnitsResponse(BaseModel):
    plant_id: str
    count: int
    reason: UnplacedReasonEnum


class TolerancePlacementResponse(BaseModel):
    zone_id: str
    plant_id: str
    count: int
    deficit_hours: float


class LayoutResponse(BaseModel):
    garden_id: str
    zone_assignments: Dict[str, List[PlantAllocationResponse]]
    space_utilization: float
    zone_utilization: Dict[str, float]
    generated_at: datetime
    target_utilization_percent: float
    achieved_target_utilization: bool
    garden_utilization: float
    timed_out: bool
    unplaced_units: List[UnplacedUnitsResponse] = []
    tolerance_placements: List[TolerancePlacementResponse] = []
    elapsed_ms: float
