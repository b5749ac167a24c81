"""Clinic directory records: providers, patients and the service catalog."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ServiceCategory(str, Enum):
    """Service families that decide which attention flow applies."""
    GENERAL = "general"
    SURGICAL = "surgical"
    EMERGENCY = "emergency"
    AESTHETIC = "aesthetic"


class Provider(BaseModel):
    """Veterinarian who owns a weekly schedule."""
    id: str
    name: str
    active: bool = True
    surgical: bool = False


class Patient(BaseModel):
    """Animal patient; ``owner_id`` links it to the owner who may book for it."""
    id: str
    name: str
    owner_id: Optional[str] = None


class Service(BaseModel):
    """Bookable service with its base price and supply requirements."""
    id: str
    name: str
    category: ServiceCategory = ServiceCategory.GENERAL
    base_price: Decimal = Decimal("0")
    duration_minutes: int = 30
    required_supplies: dict[str, int] = Field(default_factory=dict)
    active: bool = True
