"""
Request schemas

Pydantic models for the JSON bodies the API accepts. Shape checks live here;
rules that need the database (ownership, transitions, existence) live in the
domain modules.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class UserRegister(BaseModel):
    email: str = Field(..., min_length=3, description="Login email (stored lower-cased)")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field("", description="May be empty for single-name accounts")
    profile_image: Optional[str] = Field(None, description="Image URL")


class VerificationIn(BaseModel):
    verification_type: Literal["id_verified", "phone_verified", "address_verified"] = Field(
        ..., description="id_verified, phone_verified or address_verified"
    )


class Dimensions(BaseModel):
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class TripIn(BaseModel):
    departure_airport: str = Field(..., min_length=3, description="IATA code or full airport name")
    destination_city: str = Field(..., min_length=1)
    departure_date: datetime
    arrival_date: datetime
    airline: Optional[str] = None
    flight_number: Optional[str] = Field(None, min_length=2)
    available_weight: float = Field(..., gt=0, description="Spare luggage capacity in kg")
    price_per_kg: float = Field(..., ge=0)
    notes: Optional[str] = None


class TripUpdate(BaseModel):
    departure_airport: Optional[str] = Field(None, min_length=3)
    destination_city: Optional[str] = None
    departure_date: Optional[datetime] = None
    arrival_date: Optional[datetime] = None
    airline: Optional[str] = None
    flight_number: Optional[str] = None
    available_weight: Optional[float] = Field(None, gt=0)
    price_per_kg: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class PackageIn(BaseModel):
    sender_city: str = Field(..., min_length=1)
    receiver_city: str = Field(..., min_length=1)
    package_type: str = Field(..., min_length=1, description="documents, electronics, clothing, ...")
    weight: float = Field(..., gt=0, description="kg")
    dimensions: Optional[Dimensions] = None
    delivery_deadline: Optional[datetime] = None
    offered_payment: float = Field(..., ge=0)
    description: Optional[str] = None


class PackageUpdate(BaseModel):
    sender_city: Optional[str] = None
    receiver_city: Optional[str] = None
    package_type: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None
    delivery_deadline: Optional[datetime] = None
    offered_payment: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DeliveryIn(BaseModel):
    trip_id: int
    package_id: int
    traveler_id: int = Field(..., description="Must be the trip owner")
    sender_id: int = Field(..., description="Must be the package owner")


class DeliveryStatusIn(BaseModel):
    status: str = Field(..., min_length=1, description="pending, accepted, in_transit, delivered, cancelled")


class PaymentStatusIn(BaseModel):
    payment_status: str = Field(..., min_length=1, description="pending, in_escrow, released, refunded")


class MessageIn(BaseModel):
    receiver_id: int
    content: str = Field(..., min_length=1, max_length=5000)


class ReviewIn(BaseModel):
    reviewee_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    delivery_id: Optional[int] = None
