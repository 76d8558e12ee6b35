# =============================================================================
# app/routers/vendors.py - Vendor Registration Endpoints
# =============================================================================
# Two-step onboarding for the signed-in user, logo upload, and change
# requests against an existing registration.
# =============================================================================

from fastapi import APIRouter, Depends, File, Path, UploadFile

from app.auth import get_current_user, AuthUser
from core.models.vendor import (
    VendorBusinessDetails,
    VendorRegistrationCreate,
    VendorUpdateRequestCreate,
)
from core.services.vendor_service import VendorService

router = APIRouter()


@router.get("/registration")
async def get_registration(user: AuthUser = Depends(get_current_user)):
    """The user's latest registration (or null) and its update requests."""
    return VendorService.get_my_registration(user.id)


@router.post("/registration", status_code=201)
async def submit_registration(
    body: VendorRegistrationCreate,
    user: AuthUser = Depends(get_current_user),
):
    """
    Step one: personal details and categories.

    Raises:
        409: The user already has a submitted registration
        422: Invalid mobile, email or categories
    """
    return {"success": True, "data": VendorService.submit_step_one(user.id, body)}


@router.post("/registration/logo")
async def upload_logo(
    file: UploadFile = File(..., description="Logo image"),
    user: AuthUser = Depends(get_current_user),
):
    """Upload a logo image and attach it to the user's registration."""
    content = await file.read()
    uploaded = VendorService.upload_logo(user.id, file.filename, content, file.content_type)
    return {"success": True, "data": uploaded}


@router.patch("/registration/{registration_id}")
async def submit_business_details(
    body: VendorBusinessDetails,
    registration_id: str = Path(..., description="Vendor registration ID"),
    user: AuthUser = Depends(get_current_user),
):
    """Step two: business name, address, GST number and map location."""
    updated = VendorService.submit_step_two(registration_id, user.id, body)
    return {"success": True, "data": updated}


@router.post("/update-requests", status_code=201)
async def create_update_request(
    body: VendorUpdateRequestCreate,
    user: AuthUser = Depends(get_current_user),
):
    """Ask an admin to change fields of the user's registration."""
    return {"success": True, "data": VendorService.create_update_request(user.id, body)}
