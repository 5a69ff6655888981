"""
Database Schemas for the Pilgrimage Management API (MongoDB)

Each record model corresponds to a MongoDB collection.
Collection name is the lowercase of the class name.
Documents are stored with camelCase keys, the same shape the API returns.
"""
from datetime import datetime
from typing import Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["pilgrim", "admin", "staff"]
CrowdLevel = Literal["Low", "Medium", "High", "Very High"]
BookingStatus = Literal["Booked", "Completed", "Cancelled"]
AlertType = Literal["Medical", "Security", "Lost"]
AlertStatus = Literal["New", "Acknowledged", "Resolved"]


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    @classmethod
    def collection_name(cls) -> str:
        return cls.__name__.lower()


# -----------------------------
# Records (collections)
# -----------------------------

class AccessibilityNeeds(Record):
    is_differently_abled: bool = False
    is_senior_citizen: bool = False


class User(Record):
    name: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Login email, unique")
    password_hash: str = Field(..., description="Salted password hash")
    role: Role = "pilgrim"
    accessibility_needs: AccessibilityNeeds = Field(default_factory=AccessibilityNeeds)


class Temple(Record):
    name: str
    location: str
    current_crowd_level: CrowdLevel = "Low"
    estimated_wait_time: int = Field(15, description="Estimated wait in minutes")


class TempleStatus(Record):
    """Partial temple update written by crowd ingestion."""
    current_crowd_level: CrowdLevel


class DarshanBooking(Record):
    user: ObjectId = Field(..., description="Reference to user _id")
    temple: ObjectId = Field(..., description="Reference to temple _id")
    slot_time: datetime
    status: BookingStatus = "Booked"
    qr_code: str = Field(..., min_length=1, description="Globally unique booking code")


class CrowdData(Record):
    temple: ObjectId
    crowd_count: int
    source: str = Field(..., description="Sensor id, e.g. CCTV-Gate1")


class GeoPoint(Record):
    latitude: str
    longitude: str


class EmergencyAlert(Record):
    user: Optional[ObjectId] = None
    location: GeoPoint
    alert_type: AlertType = "Medical"
    status: AlertStatus = "New"


# -----------------------------
# Requests
# -----------------------------

class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    # Any string; an unknown or malformed email gets the same "Invalid Credentials" answer.
    email: str
    password: str


class BookingRequest(Record):
    temple_id: str
    slot_time: datetime


class CrowdDataRequest(Record):
    temple_id: str
    crowd_count: int
    crowd_level: CrowdLevel
    source: str


class PanicAlertRequest(Record):
    latitude: str
    longitude: str
    alert_type: Optional[AlertType] = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def coordinate_as_text(cls, value: Union[str, int, float]):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("alert_type", mode="before")
    @classmethod
    def empty_alert_type_is_missing(cls, value):
        return value or None


class TokenResponse(BaseModel):
    token: str


class MessageResponse(BaseModel):
    msg: str
