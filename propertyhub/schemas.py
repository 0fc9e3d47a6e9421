"""
propertyhub/schemas.py

Pydantic request/response schemas for the PropertyHub API.
Listing bodies use the camelCase wire names (areaSqFt, listedBy, ...) through
field aliases; Python code reads the snake_case attributes.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from propertyhub.models import FurnishedState, ListedBy, ListingType, PropertyType, UserRole


def _clean_string_list(values: Optional[List[str]]) -> List[str]:
    if not values:
        return []
    cleaned = []
    for value in values:
        value = str(value).strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def _normalize_email(value):
    if not isinstance(value, str):
        return value
    email = value.strip().lower()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise ValueError("Valid email is required")
    return email


def _validate_iso_date(value: str) -> str:
    text = value.strip()
    try:
        date.fromisoformat(text[:10])
    except ValueError:
        raise ValueError("availableFrom must be an ISO 8601 date")
    return text


# ========================================================================
# LISTING SCHEMAS
# ========================================================================

class ListingCreateRequest(BaseModel):
    """Request schema for creating a listing.

    The external id, owner and active flag are assigned server-side and are
    never read from the body.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., min_length=1, max_length=200)
    type: PropertyType
    price: float = Field(..., ge=0)
    state: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    area_sqft: float = Field(..., ge=0, alias="areaSqFt")
    bedrooms: int = Field(..., ge=0)
    bathrooms: int = Field(..., ge=0)
    amenities: List[str] = Field(default_factory=list)
    furnished: FurnishedState
    available_from: str = Field(..., alias="availableFrom")
    listed_by: ListedBy = Field(..., alias="listedBy")
    tags: List[str] = Field(default_factory=list)
    color_theme: str = Field(..., min_length=1, max_length=50, alias="colorTheme")
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_verified: bool = Field(False, alias="isVerified")
    listing_type: ListingType = Field(..., alias="listingType")

    @field_validator("title", "state", "city", "color_theme", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("amenities", "tags")
    @classmethod
    def clean_lists(cls, v):
        return _clean_string_list(v)

    @field_validator("available_from")
    @classmethod
    def validate_available_from(cls, v):
        return _validate_iso_date(v)

    def to_document(self) -> Dict[str, Any]:
        """Listing document fields keyed by wire name."""
        return self.model_dump(mode="json", by_alias=True)


class ListingUpdateRequest(BaseModel):
    """Partial update. Only fields present in the body are changed."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[PropertyType] = None
    price: Optional[float] = Field(None, ge=0)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    area_sqft: Optional[float] = Field(None, ge=0, alias="areaSqFt")
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    amenities: Optional[List[str]] = None
    furnished: Optional[FurnishedState] = None
    available_from: Optional[str] = Field(None, alias="availableFrom")
    listed_by: Optional[ListedBy] = Field(None, alias="listedBy")
    tags: Optional[List[str]] = None
    color_theme: Optional[str] = Field(None, min_length=1, max_length=50, alias="colorTheme")
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_verified: Optional[bool] = Field(None, alias="isVerified")
    listing_type: Optional[ListingType] = Field(None, alias="listingType")

    # Omitted fields stay unchanged; only rating may be cleared with null
    @field_validator(
        "title", "type", "price", "state", "city", "area_sqft", "bedrooms",
        "bathrooms", "amenities", "furnished", "available_from", "listed_by",
        "tags", "color_theme", "is_verified", "listing_type",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title", "state", "city", "color_theme", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("amenities", "tags")
    @classmethod
    def clean_lists(cls, v):
        if v is None:
            return v
        return _clean_string_list(v)

    @field_validator("available_from")
    @classmethod
    def validate_available_from(cls, v):
        if v is None:
            return v
        return _validate_iso_date(v)

    def to_changes(self) -> Dict[str, Any]:
        """Changed fields keyed by wire name (unset fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ========================================================================
# AUTH / USER SCHEMAS
# ========================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.user

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class UserResponse(BaseModel):
    """Public user view. Never includes the password hash."""
    id: int
    name: str
    email: str
    role: str
    createdAt: Optional[str] = None


class TokenResponse(BaseModel):
    token: str
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None


# ========================================================================
# RECOMMENDATION SCHEMAS
# ========================================================================

class RecommendationCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=254)
    property_id: str = Field(..., min_length=1, alias="propertyId")
    message: Optional[str] = Field(None, max_length=500)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)
