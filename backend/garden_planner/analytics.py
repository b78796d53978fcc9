from datetime import datetime, timezone
from enum import Enum
import logging

logger = logging.getLogger(__name__)


class GardenEvent(str, Enum):
    GARDEN_CREATED = "garden_created"
    GARDEN_UPDATED = "garden_updated"
    GARDEN_DELETED = "garden_deleted"
    LAYOUT_GENERATED = "layout_generated"


class Analytics:
    """Structured event logging for garden activity"""

    @staticmethod
    def track_event(event: GardenEvent, garden_id: str, properties: dict = None):
        """Track an analytics event"""
        event = GardenEvent(event)
        try:
            logger.info(f"Event: {event.value} garden={garden_id} {properties or {}}", extra={
                "event": event.value,
                "garden_id": garden_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "properties": properties or {}
            })
        except Exception as e:
            logger.error(f"Analytics error: {str(e)}")

    def garden_created(self, garden):
        self.track_event(GardenEvent.GARDEN_CREATED, garden.id, {
            "area": garden.area,
            "zones": len(garden.zones),
            "plants": len(garden.plants),
            "units": sum(p.quantity for p in garden.plants)
        })

    def layout_generated(self, layout, layout_id: int = None):
        """Summary of a stored layout; best-effort and timed-out runs are flagged."""
        self.track_event(GardenEvent.LAYOUT_GENERATED, layout.garden_id, {
            "layout_id": layout_id,
            "space_utilization": layout.space_utilization,
            "target_utilization_percent": layout.target_utilization_percent,
            "achieved_target_utilization": layout.achieved_target_utilization,
            "timed_out": layout.timed_out,
            "placed_units": layout.placed_unit_count,
            "unplaced_units": layout.unplaced_unit_count,
            "tolerance_placements": len(layout.tolerance_placements)
        })


analytics = Analytics()
