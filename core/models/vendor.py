# =============================================================================
# core/models/vendor.py - Vendor Onboarding Schemas
# =============================================================================
# Vendor registration is a two-step workflow:
# - Step one: personal details and categories (status "submitted")
# - Step two: business details (address, GST, map location)
# An admin then approves or rejects it. Approved vendors file update
# requests which an admin applies or rejects.
# =============================================================================

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from lib.utils import is_valid_email


MOBILE_PATTERN = re.compile(r"^\+?\d{10,15}$")


class VendorCategory(str, Enum):
    """Marketplace areas a vendor can sell in."""
    SHOP = "shop"
    VEHICLE = "vehicle"
    SERVICE = "service"
    SIMRACING = "simracing"
    EVENT = "event"


class RegistrationStatus(str, Enum):
    """Lifecycle of a vendor_registrations row."""
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    """Admin decision on a registration or update request."""
    APPROVED = "approved"
    REJECTED = "rejected"


def _clean_mobile(value: str) -> str:
    return re.sub(r"[\s\-()]", "", value or "")


class VendorRegistrationCreate(BaseModel):
    """
    Step one of vendor registration.

    Example:
        {
            "personal_name": "Asha Rao",
            "mobile": "+919876543210",
            "email": "asha@example.com",
            "categories": ["Shop", "Service"],
            "category_specific_details": {"shop": {"store_type": "parts"}}
        }
    """
    personal_name: str = Field(..., min_length=1, max_length=200)
    mobile: str
    email: str
    whatsapp_number: str | None = None
    categories: list[str] = Field(..., min_length=1)
    category_specific_details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("personal_name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("personal_name must not be empty")
        return value

    @field_validator("mobile")
    @classmethod
    def mobile_digits(cls, value: str) -> str:
        value = _clean_mobile(value)
        if not MOBILE_PATTERN.match(value):
            raise ValueError("mobile must be 10-15 digits, optionally starting with +")
        return value

    @field_validator("whatsapp_number")
    @classmethod
    def whatsapp_digits(cls, value: str | None) -> str | None:
        if not value:
            return None
        value = _clean_mobile(value)
        if not MOBILE_PATTERN.match(value):
            raise ValueError("whatsapp_number must be 10-15 digits, optionally starting with +")
        return value

    @field_validator("email")
    @classmethod
    def email_shape(cls, value: str) -> str:
        value = value.strip().lower()
        if not is_valid_email(value):
            raise ValueError("email is not a valid address")
        return value

    @field_validator("categories")
    @classmethod
    def known_categories(cls, value: list[str]) -> list[str]:
        allowed = {c.value for c in VendorCategory}
        normalised = []
        for category in value:
            key = category.strip().lower()
            if key not in allowed:
                raise ValueError(f"unknown category: {category}")
            if key not in normalised:
                normalised.append(key)
        return normalised


class VendorBusinessDetails(BaseModel):
    """Step two of vendor registration."""
    business_name: str = Field(..., min_length=1, max_length=200)
    business_address: str = Field(..., min_length=1)
    gst_number: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class VendorUpdateRequestCreate(BaseModel):
    """An approved vendor asking an admin to change registration data."""
    vendor_registration_id: str = Field(..., min_length=1)
    request_type: str = Field(..., min_length=1)
    requested_changes: dict[str, Any] = Field(default_factory=dict)
    current_data: dict[str, Any] = Field(default_factory=dict)


class VendorStatusUpdate(BaseModel):
    """Admin decision on a registration or update request."""
    status: ReviewDecision
    rejection_reason: str | None = None
    admin_notes: str | None = None
