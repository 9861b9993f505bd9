"""
Database Schemas for the Dress Rental Marketplace

Each Pydantic model corresponds to a MongoDB collection.

Collections:
- dresses
- dress_availability
- profiles (document id is the authenticated user id)
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

# ---------- Catalog ----------

DRESS_TYPES = ["Casual", "Semi-Formal", "Work", "Party", "Formal"]
SIZES = ["XS", "S", "M", "L", "XL"]
OTHER_COLOR = "Other"
COMMON_COLORS = [
    "Black", "White", "Red", "Blue", "Green", "Pink", "Purple", "Yellow",
    "Orange", "Navy", "Gray", "Silver", "Gold", "Beige", "Brown", OTHER_COLOR,
]
OTHER_LOCATION = "Other (specify below)"
PICKUP_LOCATIONS = [
    "Moffitt Library",
    "Sather Gate",
    "Sproul Plaza",
    "Memorial Glade",
    "RSF (Recreational Sports Facility)",
    "MLK Student Union",
    OTHER_LOCATION,
]

# ---------- Core Domain Schemas ----------


class AvailabilityStatus(str, Enum):
    available = "available"
    reserved = "reserved"
    rented = "rented"
    unavailable = "unavailable"


class Dress(BaseModel):
    owner_id: str = Field(..., description="Owner user id")
    title: str
    types: List[str] = Field(..., min_length=1, description="Casual|Semi-Formal|Work|Party|Formal")
    colors: List[str] = Field(..., min_length=1)
    size: str = Field(..., description="XS|S|M|L|XL")
    price: float = Field(..., ge=0, description="Daily rental price")
    description: str
    image_url: List[str] = Field(default_factory=list, description="Public URLs of dress images")
    pickup_location: str
    custom_pickup_location: Optional[str] = None
    is_active: bool = Field(True, description="False once the owner removes the listing")


class Profile(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    avatar_url: Optional[str] = Field(None, description="Public URL of avatar image")


class Availability(BaseModel):
    dress_id: str
    start_date: date
    end_date: date
    is_available: bool = True
    renter_id: Optional[str] = None
    status: AvailabilityStatus = AvailabilityStatus.available

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# ---------- Request/Response DTOs ----------


class DressFilters(BaseModel):
    types: List[str] = []
    colors: List[str] = []
    sizes: List[str] = []
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    is_available: bool = False


class AvailabilityCreate(BaseModel):
    start_date: date
    end_date: date
    is_available: bool = True
    renter_id: Optional[str] = None
    status: AvailabilityStatus = AvailabilityStatus.available


class AvailabilityUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_available: Optional[bool] = None
    renter_id: Optional[str] = None
    status: Optional[AvailabilityStatus] = None


class CalendarClickRequest(BaseModel):
    selected: List[date] = Field(default_factory=list, max_length=2)
    clicked: date


class CalendarSelection(BaseModel):
    selected: List[date]
    rental_days: int
    total_price: float
    changed: bool
