# =============================================================================
# core/services/vendor_service.py - Vendor Onboarding
# =============================================================================
# Registration workflow:
#   step one (personal details)  -> status "submitted", step "1"
#   step two (business details)  -> step "2"
#   admin review                 -> "approved" (profile becomes vendor) or "rejected"
# Approved vendors file update requests that an admin applies or rejects.
#
# Transactional emails go through the `send-vendor-email` Edge Function and
# are best-effort: a failed email never fails the workflow step.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import ConflictError, ForbiddenError, NotFoundError
from core.models.notification import NotificationType
from core.models.vendor import (
    RegistrationStatus,
    ReviewDecision,
    VendorBusinessDetails,
    VendorRegistrationCreate,
    VendorUpdateRequestCreate,
)
from core.services.notification_service import NotificationService
from core.services.storage_service import StorageService, VENDOR_LOGO_BUCKET
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import compact, normalize_uuid, utc_now

logger = logging.getLogger(__name__)

REGISTRATIONS = "vendor_registrations"
UPDATE_REQUESTS = "vendor_update_requests"
EMAIL_FUNCTION = "send-vendor-email"

REGISTRATION_WITH_PROFILE = "*, profiles:user_id(full_name, username, avatar_url)"
REQUEST_WITH_REGISTRATION = "*, vendor_registration:vendor_registrations(business_name, personal_name, email)"

# Columns an approved update request may change
UPDATABLE_COLUMNS = frozenset({
    "personal_name", "mobile", "email", "whatsapp_number", "categories",
    "category_specific_details", "business_name", "business_address",
    "gst_number", "latitude", "longitude", "logo_url",
})


def send_vendor_email(
    email: str | None,
    name: str | None,
    email_type: str,
    request_type: str,
    business_name: str | None = None,
) -> bool:
    """Fire the vendor email Edge Function; failures are only logged."""
    if not email:
        return False
    return SupabaseClient.invoke_function(EMAIL_FUNCTION, compact({
        "vendorEmail": email,
        "vendorName": name,
        "businessName": business_name,
        "emailType": email_type,
        "requestType": request_type,
    }))


class VendorService:
    """
    Service for vendor registrations and update requests.
    """

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @staticmethod
    def get_latest_registration(user_id: UUID | str) -> dict[str, Any] | None:
        client = SupabaseClient.get_client()
        response = (
            client.table(REGISTRATIONS)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    @staticmethod
    def get_registration(registration_id: str) -> dict[str, Any]:
        """
        Raises:
            NotFoundError: If the registration doesn't exist
        """
        client = SupabaseClient.get_client()
        response = (
            client.table(REGISTRATIONS)
            .select("*")
            .eq("id", registration_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFoundError("Vendor registration", registration_id)
        return response.data[0]

    @staticmethod
    def get_owned_registration(registration_id: str, user_id: UUID | str) -> dict[str, Any]:
        """
        Raises:
            NotFoundError: If the registration doesn't exist
            ForbiddenError: If it belongs to someone else
        """
        registration = VendorService.get_registration(registration_id)
        if str(registration.get("user_id")) != normalize_uuid(user_id):
            raise ForbiddenError("You do not own this vendor registration")
        return registration

    @staticmethod
    def get_my_registration(user_id: UUID | str) -> dict[str, Any]:
        """Latest registration of the user with its update requests."""
        registration = VendorService.get_latest_registration(user_id)
        if not registration:
            return {"registration": None, "updateRequests": []}

        client = SupabaseClient.get_client()
        requests = (
            client.table(UPDATE_REQUESTS)
            .select("*")
            .eq("vendor_registration_id", registration["id"])
            .order("created_at", desc=True)
            .execute()
        )
        return {"registration": registration, "updateRequests": requests.data or []}

    # -------------------------------------------------------------------------
    # Registration steps
    # -------------------------------------------------------------------------

    @staticmethod
    def submit_step_one(user_id: UUID | str, body: VendorRegistrationCreate) -> dict[str, Any]:
        """
        Create a registration from step-one details.

        Raises:
            ConflictError: If the user already has a submitted registration
        """
        user_id = normalize_uuid(user_id)
        latest = VendorService.get_latest_registration(user_id)
        if latest and latest.get("status") == RegistrationStatus.SUBMITTED.value:
            raise ConflictError(
                "A vendor registration is already awaiting review",
                suggestion="Wait for the admin decision or update the existing registration",
                details={"registration_id": latest.get("id")},
            )

        client = SupabaseClient.get_client()
        response = (
            client.table(REGISTRATIONS)
            .insert({
                "user_id": user_id,
                "personal_name": body.personal_name,
                "mobile": body.mobile,
                "email": body.email,
                "whatsapp_number": body.whatsapp_number,
                "categories": body.categories,
                "category_specific_details": body.category_specific_details,
                "status": RegistrationStatus.SUBMITTED.value,
                "submitted_at": utc_now().isoformat(),
                "step": "1",
            })
            .execute()
        )
        if not response.data:
            raise SupabaseClientError("Insert returned no data", code="CREATE_REGISTRATION_FAILED")
        registration = response.data[0]
        logger.info(f"Vendor registration {registration.get('id')} submitted by {user_id}")

        send_vendor_email(
            body.email,
            body.personal_name,
            email_type="step one",
            request_type="registration",
            business_name="not verified",
        )
        return registration

    @staticmethod
    def submit_step_two(
        registration_id: str,
        user_id: UUID | str,
        body: VendorBusinessDetails,
    ) -> dict[str, Any]:
        """
        Add business details to the user's registration.

        Raises:
            NotFoundError / ForbiddenError: Ownership checks
        """
        VendorService.get_owned_registration(registration_id, user_id)

        client = SupabaseClient.get_client()
        changes = {**compact(body.model_dump()), "step": "2", "updated_at": utc_now().isoformat()}
        response = client.table(REGISTRATIONS).update(changes).eq("id", registration_id).execute()
        logger.info(f"Vendor registration {registration_id} completed step two")
        return response.data[0] if response.data else changes

    @staticmethod
    def upload_logo(
        user_id: UUID | str,
        filename: str | None,
        content: bytes,
        content_type: str | None,
    ) -> dict[str, Any]:
        """
        Store a logo image and attach it to the user's latest registration.

        Raises:
            NotFoundError: If the user hasn't started a registration
        """
        user_id = normalize_uuid(user_id)
        registration = VendorService.get_latest_registration(user_id)
        if not registration:
            raise NotFoundError("Vendor registration", user_id)

        uploaded = StorageService.upload_image(
            VENDOR_LOGO_BUCKET, user_id, filename, content, content_type
        )

        client = SupabaseClient.get_client()
        try:
            client.table(REGISTRATIONS).update(
                {"logo_url": uploaded["public_url"]}
            ).eq("id", registration["id"]).execute()
        except Exception:
            # Nothing references the file yet
            StorageService.delete_file(VENDOR_LOGO_BUCKET, uploaded["path"])
            raise
        return {"registration_id": registration["id"], **uploaded}

    # -------------------------------------------------------------------------
    # Update requests
    # -------------------------------------------------------------------------

    @staticmethod
    def create_update_request(user_id: UUID | str, body: VendorUpdateRequestCreate) -> dict[str, Any]:
        """
        File a change request against the user's registration.

        Raises:
            NotFoundError: If the registration doesn't exist
            ForbiddenError: If it belongs to someone else
        """
        user_id = normalize_uuid(user_id)
        registration = VendorService.get_owned_registration(body.vendor_registration_id, user_id)

        client = SupabaseClient.get_client()
        response = (
            client.table(UPDATE_REQUESTS)
            .insert({
                "vendor_registration_id": body.vendor_registration_id,
                "request_type": body.request_type,
                "requested_changes": body.requested_changes,
                "current_data": body.current_data,
                "requested_by": user_id,
                "status": "pending",
            })
            .execute()
        )
        if not response.data:
            raise SupabaseClientError("Insert returned no data", code="CREATE_UPDATE_REQUEST_FAILED")
        request = response.data[0]
        logger.info(f"Update request {request.get('id')} filed for registration {registration['id']}")

        send_vendor_email(
            registration.get("email"),
            registration.get("personal_name"),
            email_type="processing",
            request_type=body.request_type,
            business_name=registration.get("business_name"),
        )
        return request

    # -------------------------------------------------------------------------
    # Admin review
    # -------------------------------------------------------------------------

    @staticmethod
    def list_for_admin() -> dict[str, Any]:
        """Every registration and update request, newest first."""
        client = SupabaseClient.get_client()
        vendors = (
            client.table(REGISTRATIONS)
            .select(REGISTRATION_WITH_PROFILE)
            .order("created_at", desc=True)
            .execute()
        )
        requests = (
            client.table(UPDATE_REQUESTS)
            .select(REQUEST_WITH_REGISTRATION)
            .order("created_at", desc=True)
            .execute()
        )
        return {"vendors": vendors.data or [], "updateRequests": requests.data or []}

    @staticmethod
    def review_registration(
        registration_id: str,
        admin_id: UUID | str,
        decision: ReviewDecision,
        rejection_reason: str | None = None,
    ) -> dict[str, Any]:
        """
        Approve or reject a registration and tell the vendor.

        Approving also flags the user's profile as a vendor.

        Raises:
            NotFoundError: If the registration doesn't exist
        """
        registration = VendorService.get_registration(registration_id)
        now = utc_now().isoformat()

        changes: dict[str, Any] = {
            "status": decision.value,
            "reviewed_by": normalize_uuid(admin_id),
            "reviewed_at": now,
        }
        if decision == ReviewDecision.APPROVED:
            changes["approved_at"] = now
        else:
            changes["rejection_reason"] = rejection_reason

        client = SupabaseClient.get_client()
        response = client.table(REGISTRATIONS).update(changes).eq("id", registration_id).execute()
        updated = response.data[0] if response.data else {**registration, **changes}

        vendor_id = str(registration["user_id"])
        if decision == ReviewDecision.APPROVED:
            client.table("profiles").update({"is_vendor": True}).eq("id", vendor_id).execute()
            title, message = "Vendor application approved", "Your vendor registration has been approved."
            notification_type = NotificationType.VENDOR_APPROVED.value
        else:
            title = "Vendor application rejected"
            message = f"Your vendor registration was rejected: {rejection_reason}" if rejection_reason \
                else "Your vendor registration was rejected."
            notification_type = NotificationType.VENDOR_REJECTED.value

        logger.info(f"Vendor registration {registration_id} {decision.value} by {admin_id}")

        try:
            NotificationService.create(
                vendor_id,
                notification_type,
                title=title,
                message=message,
                data={"registration_id": registration_id, "url": "/vendor-dashboard"},
            )
        except SupabaseClientError as e:
            logger.error(f"Failed to notify vendor {vendor_id}: {e}")

        send_vendor_email(
            registration.get("email"),
            registration.get("personal_name"),
            email_type=decision.value,
            request_type="registration",
            business_name=registration.get("business_name"),
        )
        return updated

    @staticmethod
    def review_update_request(
        request_id: str,
        admin_id: UUID | str,
        decision: ReviewDecision,
        rejection_reason: str | None = None,
        admin_notes: str | None = None,
    ) -> dict[str, Any]:
        """
        Approve (apply the requested changes) or reject an update request.

        Raises:
            NotFoundError: If the request doesn't exist
            ConflictError: If it was already reviewed
        """
        client = SupabaseClient.get_client()
        found = client.table(UPDATE_REQUESTS).select("*").eq("id", request_id).limit(1).execute()
        if not found.data:
            raise NotFoundError("Update request", request_id)
        request = found.data[0]

        if request.get("status") not in (None, "pending"):
            raise ConflictError(
                f"Update request already {request.get('status')}",
                details={"request_id": request_id},
            )

        registration = VendorService.get_registration(str(request["vendor_registration_id"]))

        if decision == ReviewDecision.APPROVED:
            requested = request.get("requested_changes") or {}
            applied = {k: v for k, v in requested.items() if k in UPDATABLE_COLUMNS}
            skipped = sorted(set(requested) - set(applied))
            if skipped:
                logger.warning(f"Ignoring non-updatable fields in request {request_id}: {skipped}")
            if applied:
                client.table(REGISTRATIONS).update(
                    {**applied, "updated_at": utc_now().isoformat()}
                ).eq("id", registration["id"]).execute()

        changes = compact({
            "status": decision.value,
            "reviewed_by": normalize_uuid(admin_id),
            "reviewed_at": utc_now().isoformat(),
            "rejection_reason": rejection_reason if decision == ReviewDecision.REJECTED else None,
            "admin_notes": admin_notes,
        })
        response = client.table(UPDATE_REQUESTS).update(changes).eq("id", request_id).execute()
        logger.info(f"Update request {request_id} {decision.value} by {admin_id}")

        send_vendor_email(
            registration.get("email"),
            registration.get("personal_name"),
            email_type=decision.value,
            request_type=request.get("request_type") or "update",
            business_name=registration.get("business_name"),
        )
        return response.data[0] if response.data else {**request, **changes}
