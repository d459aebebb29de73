from pms.models.property import Property, RatePlan, Room
from pms.models.inventory import InventoryRecord
from pms.models.booking import Booking, Guest

__all__ = [
    "Booking",
    "Guest",
    "InventoryRecord",
    "Property",
    "RatePlan",
    "Room",
]
