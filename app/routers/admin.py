# =============================================================================
# app/routers/admin.py - Admin Vendor Review Endpoints
# =============================================================================
# Every endpoint requires a profile with role "admin".
# =============================================================================

from fastapi import APIRouter, Depends, Path

from app.auth import require_admin, AuthUser
from app.routers.comments import no_store
from core.models.vendor import VendorStatusUpdate
from core.services.vendor_service import VendorService

router = APIRouter()


@router.get("/vendors")
async def list_vendors(admin: AuthUser = Depends(require_admin)):
    """All vendor registrations and update requests, newest first."""
    return no_store(VendorService.list_for_admin())


# Declared before /vendors/{registration_id}/status so the literal segment wins
@router.post("/vendors/update-requests/{request_id}/status")
async def review_update_request(
    body: VendorStatusUpdate,
    request_id: str = Path(..., description="Update request ID"),
    admin: AuthUser = Depends(require_admin),
):
    """
    Approve or reject a pending update request.

    Raises:
        404: Request not found
        409: Request already reviewed
    """
    updated = VendorService.review_update_request(
        request_id,
        admin.id,
        body.status,
        rejection_reason=body.rejection_reason,
        admin_notes=body.admin_notes,
    )
    return {"success": True, "data": updated}


@router.post("/vendors/{registration_id}/status")
async def review_registration(
    body: VendorStatusUpdate,
    registration_id: str = Path(..., description="Vendor registration ID"),
    admin: AuthUser = Depends(require_admin),
):
    """Approve or reject a vendor registration."""
    updated = VendorService.review_registration(
        registration_id,
        admin.id,
        body.status,
        rejection_reason=body.rejection_reason,
    )
    return {"success": True, "data": updated}
