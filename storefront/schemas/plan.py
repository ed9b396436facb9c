import json
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime
from decimal import Decimal


def normalize_features(value: Any) -> List[str]:
    """
    Coerce stored feature data into an ordered list of strings.

    Spreadsheet rows carry features as a JSON array string or as one
    feature per line / comma; database rows carry a JSON array.
    """
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError:
                value = text
        if isinstance(value, str):
            separator = "\n" if "\n" in value else ","
            return [part.strip() for part in value.split(separator) if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if isinstance(item, str) and item.strip()]
    return []


class PlanBase(BaseModel):
    """Base schema for a subscription plan, with admin input rules"""
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0, le=999999, decimal_places=2)
    duration_months: int = Field(..., ge=1, le=120)
    features: List[str] = Field(default_factory=list)
    is_active: bool = True
    display_order: int = 0

    @field_validator("name", "description")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("features", mode="before")
    @classmethod
    def coerce_features(cls, value):
        return normalize_features(value)


class PlanCreate(PlanBase):
    """Schema for creating a new plan"""
    pass


class PlanUpdate(BaseModel):
    """Schema for updating a plan (all fields optional)"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0, le=999999, decimal_places=2)
    duration_months: Optional[int] = Field(None, ge=1, le=120)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None


class Plan(BaseModel):
    """
    A stored plan as read back from any backend.

    Stored rows are not re-validated against the admin input rules.
    """
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    duration_months: int
    features: List[str] = Field(default_factory=list)
    is_active: bool = True
    display_order: int = 0
    created_at: Optional[datetime] = None

    @field_validator("features", mode="before")
    @classmethod
    def coerce_features(cls, value):
        return normalize_features(value)

    class Config:
        from_attributes = True


class PlanPublic(BaseModel):
    """Public schema for displaying plans in the storefront"""
    id: str
    name: str
    description: Optional[str]
    price: Decimal
    duration_months: int
    features: List[str]
    display_order: int

    class Config:
        from_attributes = True
