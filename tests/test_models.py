# =============================================================================
# tests/test_models.py - Pydantic Model Tests
# =============================================================================
# Unit tests for request models to ensure:
# - Valid data is accepted and normalised
# - Invalid data raises ValidationError
# - Computed shapes serialise the way clients expect
#
# Run with: pytest tests/test_models.py -v
# =============================================================================

import pytest
from pydantic import ValidationError

from core.models import (
    CommentCreate,
    CommentThread,
    LeagueRegistrationCreate,
    NotificationPreferences,
    PushResult,
    PushSubscribeRequest,
    RegistrationType,
    TeamCreate,
    VendorBusinessDetails,
    VendorRegistrationCreate,
    VendorStatusUpdate,
)


# =============================================================================
# Vendor Registration
# =============================================================================

class TestVendorRegistrationCreate:
    """Tests for step-one vendor registration."""

    def valid(self, **overrides):
        data = {
            "personal_name": "  Asha Rao ",
            "mobile": "+91 98765-43210",
            "email": "Asha@Example.com ",
            "categories": ["Shop", "service", "shop"],
        }
        data.update(overrides)
        return data

    def test_normalises_fields(self):
        """Mobile is stripped of separators, email lowercased, categories deduped."""
        reg = VendorRegistrationCreate(**self.valid())

        assert reg.personal_name == "Asha Rao"
        assert reg.mobile == "+919876543210"
        assert reg.email == "asha@example.com"
        assert reg.categories == ["shop", "service"]
        assert reg.whatsapp_number is None
        assert reg.category_specific_details == {}

    def test_mobile_with_parentheses(self):
        reg = VendorRegistrationCreate(**self.valid(mobile="(022) 1234 5678"))
        assert reg.mobile == "02212345678"

    @pytest.mark.parametrize("mobile", ["12345", "+12 abc 4567890", "1" * 16])
    def test_invalid_mobile_rejected(self, mobile):
        with pytest.raises(ValidationError):
            VendorRegistrationCreate(**self.valid(mobile=mobile))

    def test_invalid_whatsapp_rejected(self):
        with pytest.raises(ValidationError):
            VendorRegistrationCreate(**self.valid(whatsapp_number="999"))

    def test_empty_whatsapp_is_none(self):
        reg = VendorRegistrationCreate(**self.valid(whatsapp_number=""))
        assert reg.whatsapp_number is None

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError):
            VendorRegistrationCreate(**self.valid(email="asha-at-example"))

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            VendorRegistrationCreate(**self.valid(categories=["shop", "bakery"]))
        assert "bakery" in str(exc_info.value)

    def test_categories_required(self):
        with pytest.raises(ValidationError):
            VendorRegistrationCreate(**self.valid(categories=[]))

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            VendorRegistrationCreate(**self.valid(personal_name="   "))


class TestVendorBusinessDetails:
    """Tests for step-two business details."""

    def test_coordinates_in_range(self):
        details = VendorBusinessDetails(
            business_name="Rao Motors",
            business_address="12 MG Road, Pune",
            latitude=18.52,
            longitude=73.85,
        )
        assert details.gst_number is None

    def test_latitude_out_of_range(self):
        with pytest.raises(ValidationError):
            VendorBusinessDetails(business_name="X", business_address="Y", latitude=91)

    def test_longitude_out_of_range(self):
        with pytest.raises(ValidationError):
            VendorBusinessDetails(business_name="X", business_address="Y", longitude=-181)


class TestVendorStatusUpdate:

    def test_only_review_decisions_allowed(self):
        assert VendorStatusUpdate(status="approved").status.value == "approved"
        with pytest.raises(ValidationError):
            VendorStatusUpdate(status="submitted")


# =============================================================================
# Social
# =============================================================================

class TestCommentCreate:
    """Tests for CommentCreate."""

    def test_content_is_trimmed(self):
        comment = CommentCreate(post_id="p1", content="  Clean build!  ")
        assert comment.content == "Clean build!"

    def test_blank_content_left_to_service(self):
        comment = CommentCreate(post_id="p1", content="   ")
        assert comment.content == ""

    def test_content_too_long(self):
        with pytest.raises(ValidationError):
            CommentCreate(post_id="p1", content="x" * 2001)

    def test_empty_parent_becomes_none(self):
        comment = CommentCreate(post_id="p1", content="hi", parent_id="")
        assert comment.parent_id is None


class TestCommentThread:

    def test_to_dict_merges_comment_and_replies(self):
        thread = CommentThread(comment={"id": "c1", "content": "root"}, replies=[{"id": "c2"}])
        assert thread.to_dict() == {"id": "c1", "content": "root", "replies": [{"id": "c2"}]}


# =============================================================================
# Sim Racing
# =============================================================================

class TestTeamCreate:

    def test_name_trimmed(self):
        team = TeamCreate(name="  Apex Hunters ", member_emails=["a@b.co"])
        assert team.name == "Apex Hunters"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            TeamCreate(name="  ")

    def test_name_too_long(self):
        with pytest.raises(ValidationError):
            TeamCreate(name="x" * 101)


class TestLeagueRegistrationCreate:
    """Tests for league registration bodies."""

    def test_valid_solo(self):
        body = LeagueRegistrationCreate(
            registration_type="solo", car_class=" GT3 ", car_number=44, agreed_to_terms=True
        )
        assert body.registration_type == RegistrationType.SOLO
        assert body.car_class == "GT3"

    def test_terms_required(self):
        with pytest.raises(ValidationError) as exc_info:
            LeagueRegistrationCreate(registration_type="solo", car_class="GT3", car_number=44)
        assert "terms" in str(exc_info.value)

    def test_team_requires_team_id(self):
        with pytest.raises(ValidationError):
            LeagueRegistrationCreate(
                registration_type="team", car_class="GT3", car_number=44, agreed_to_terms=True
            )

    @pytest.mark.parametrize("number", [0, 1000])
    def test_car_number_range(self, number):
        with pytest.raises(ValidationError):
            LeagueRegistrationCreate(
                registration_type="solo", car_class="GT3", car_number=number, agreed_to_terms=True
            )

    def test_blank_car_class_rejected(self):
        with pytest.raises(ValidationError):
            LeagueRegistrationCreate(
                registration_type="solo", car_class="  ", car_number=7, agreed_to_terms=True
            )


# =============================================================================
# Notifications
# =============================================================================

class TestNotificationModels:

    def test_preferences_exclude_unset(self):
        prefs = NotificationPreferences(push_likes=False)
        assert prefs.model_dump(exclude_unset=True) == {"push_likes": False}

    def test_subscription_accepts_string_or_object(self):
        assert PushSubscribeRequest(subscription="tok").subscription == "tok"
        assert PushSubscribeRequest(subscription={"token": "tok"}).subscription == {"token": "tok"}

    def test_push_result_response_drops_empty_keys(self):
        result = PushResult(success=True, message="No subscriptions found")
        assert result.to_response() == {
            "success": True,
            "sent": 0,
            "failed": 0,
            "total": 0,
            "message": "No subscriptions found",
        }
