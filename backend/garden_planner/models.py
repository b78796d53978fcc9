from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from .database import Base


def new_garden_id() -> str:
    return str(uuid.uuid4())


class Garden(Base):
    __tablename__ = "gardens"

    id = Column(String(36), primary_key=True, index=True, default=new_garden_id)
    name = Column(String(255))
    area = Column(Float, nullable=False)  # sq ft

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    zones = relationship(
        "GardenZone", back_populates="garden",
        cascade="all, delete-orphan", order_by="GardenZone.position"
    )
    plants = relationship(
        "GardenPlant", back_populates="garden",
        cascade="all, delete-orphan", order_by="GardenPlant.position"
    )
    layouts = relationship(
        "GardenLayout", back_populates="garden",
        cascade="all, delete-orphan", order_by="GardenLayout.id"
    )


class GardenZone(Base):
    __tablename__ = "garden_zones"

    id = Column(Integer, primary_key=True, index=True)
    garden_id = Column(String(36), ForeignKey("gardens.id"), nullable=False, index=True)
    zone_id = Column(String(64), nullable=False)  # caller-assigned, unique within the garden
    position = Column(Integer, nullable=False, default=0)

    name = Column(String(255))
    area = Column(Float, nullable=False)
    sunlight_hours_available = Column(Float, nullable=False)

    garden = relationship("Garden", back_populates="zones")


class GardenPlant(Base):
    __tablename__ = "garden_plants"

    id = Column(Integer, primary_key=True, index=True)
    garden_id = Column(String(36), ForeignKey("gardens.id"), nullable=False, index=True)
    plant_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    type = Column(String(100), nullable=False)
    spacing_side_length = Column(Float)  # feet
    quantity = Column(Integer, nullable=False)
    sunlight_hours_needed = Column(Float, nullable=False)
    days_to_maturity = Column(Integer, nullable=False)
    companion_plant_ids = Column(JSON, default=list)
    incompatible_plant_ids = Column(JSON, default=list)

    garden = relationship("Garden", back_populates="plants")


class GardenLayout(Base):
    __tablename__ = "garden_layouts"

    id = Column(Integer, primary_key=True, index=True)
    garden_id = Column(String(36), ForeignKey("gardens.id"), nullable=False, index=True)

    layout_data = Column(Text, nullable=False)

    # Summary columns read by the notification side without parsing layout_data
    space_utilization = Column(Float)
    garden_utilization = Column(Float)
    target_utilization_percent = Column(Float)
    achieved_target_utilization = Column(Boolean, default=False)
    timed_out = Column(Boolean, default=False)
    unplaced_unit_count = Column(Integer, default=0)

    generated_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    garden = relationship("Garden", back_populates="layouts")
