# =============================================================================
# core/services/sim_racing_service.py - Sim Racing Teams and Leagues
# =============================================================================
# Team creation is a best-effort batch: the team row is created first,
# then each member is added on its own. Emails that don't match a sim
# racing profile and members that fail to insert are reported back
# instead of failing the request.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from core.models.sim_racing import (
    MAX_TEAM_SIZE,
    MIN_TEAM_SIZE,
    LeagueRegistrationCreate,
    RegistrationType,
    TeamCreate,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_unique_violation
from lib.utils import is_valid_email, normalize_uuid, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

TEAMS = "sim_teams"
TEAM_DRIVERS = "sim_team_drivers"
SIM_USERS = "sim_users"
LEAGUES = "sim_leagues"
SOLO_PARTICIPANTS = "sim_league_participants_solo"
TEAM_PARTICIPANTS = "sim_league_participants_team"

DRIVER_ROLE = "driver"


def normalise_member_emails(emails: list[str], creator_email: str | None) -> list[str]:
    """
    Clean the list of invited members.

    Emails are trimmed, lowercased and de-duplicated; the creator's own
    address is dropped. Team size must end up within 2-4 including the
    creator.

    Raises:
        ValidationFailedError: On malformed emails or a bad team size
    """
    creator = (creator_email or "").strip().lower()
    cleaned: list[str] = []
    invalid: list[str] = []

    for raw in emails:
        email = (raw or "").strip().lower()
        if not email:
            continue
        if not is_valid_email(email):
            invalid.append(raw)
            continue
        if email == creator or email in cleaned:
            continue
        cleaned.append(email)

    if invalid:
        raise ValidationFailedError(
            "Some member emails are not valid",
            errors={"member_emails": ", ".join(invalid)},
        )

    min_members, max_members = MIN_TEAM_SIZE - 1, MAX_TEAM_SIZE - 1
    if not min_members <= len(cleaned) <= max_members:
        raise ValidationFailedError(
            f"A team needs {MIN_TEAM_SIZE}-{MAX_TEAM_SIZE} drivers including you",
            errors={"member_emails": f"expected {min_members}-{max_members} other members, got {len(cleaned)}"},
            suggestion="Invite between 1 and 3 other drivers",
        )
    return cleaned


class SimRacingService:
    """
    Service for sim racing teams, league registration and standings.
    """

    # -------------------------------------------------------------------------
    # Teams
    # -------------------------------------------------------------------------

    @staticmethod
    def create_team(
        user_id: UUID | str,
        creator_email: str | None,
        body: TeamCreate,
    ) -> dict[str, Any]:
        """
        Create a team and add its drivers.

        Returns:
            {"data": team, "members_added", "unresolved_emails", "failed_members"}
            where members_added counts invited drivers (the creator excluded)

        Raises:
            ValidationFailedError: If the member list is invalid
        """
        user_id = normalize_uuid(user_id)
        emails = normalise_member_emails(body.member_emails, creator_email)

        client = SupabaseClient.get_client()
        response = (
            client.table(TEAMS)
            .insert({"name": body.name, "description": body.description, "creator_id": user_id})
            .execute()
        )
        if not response.data:
            raise SupabaseClientError("Insert returned no data", code="CREATE_TEAM_FAILED")
        team = response.data[0]
        logger.info(f"User {user_id} created sim team {team.get('id')}")

        resolved = SimRacingService.resolve_drivers(emails)
        unresolved = [e for e in emails if e not in resolved]

        failed: list[dict[str, Any]] = []
        added = 0
        for email, driver_id in [(None, user_id), *resolved.items()]:
            try:
                client.table(TEAM_DRIVERS).insert({
                    "team_id": team["id"],
                    "driver_id": driver_id,
                    "role": DRIVER_ROLE,
                }).execute()
                if email is not None:
                    added += 1
            except Exception as e:
                logger.warning(f"Failed to add driver {driver_id} to team {team['id']}: {e}")
                failed.append({"email": email, "driver_id": driver_id, "error": str(e)})

        return {
            "data": team,
            "members_added": added,
            "unresolved_emails": unresolved,
            "failed_members": failed,
        }

    @staticmethod
    def resolve_drivers(emails: list[str]) -> dict[str, str]:
        """
        Map lowercased member emails to sim_users ids.

        Stored emails keep whatever casing the driver signed up with, so
        each address is matched with ilike and confirmed case-insensitively
        (`_` in an address is a single-character wildcard to ilike).
        """
        client = SupabaseClient.get_client()
        resolved: dict[str, str] = {}

        for email in emails:
            found = client.table(SIM_USERS).select("id, email").ilike("email", email).execute()
            for row in found.data or []:
                if (row.get("email") or "").lower() == email:
                    resolved[email] = str(row["id"])
                    break
        return resolved

    @staticmethod
    def list_my_teams(user_id: UUID | str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        response = (
            client.table(TEAMS)
            .select("*")
            .eq("creator_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    # -------------------------------------------------------------------------
    # Leagues
    # -------------------------------------------------------------------------

    @staticmethod
    def _get_league(league_id: str) -> dict[str, Any]:
        client = SupabaseClient.get_client()
        response = client.table(LEAGUES).select("*").eq("id", league_id).limit(1).execute()
        if not response.data:
            raise NotFoundError("League", league_id)
        return response.data[0]

    @staticmethod
    def _participant_count(league_id: str) -> int:
        return (
            SupabaseClient.count(SOLO_PARTICIPANTS, eq={"league_id": league_id})
            + SupabaseClient.count(TEAM_PARTICIPANTS, eq={"league_id": league_id})
        )

    @staticmethod
    def register_for_league(
        user_id: UUID | str,
        league_id: str,
        body: LeagueRegistrationCreate,
    ) -> dict[str, Any]:
        """
        Register the user (solo) or one of their teams for a league.

        Raises:
            NotFoundError: League or team missing
            ValidationFailedError: League ended or registration type not accepted
            ForbiddenError: Team not created by the user
            ConflictError: League full or already registered
        """
        user_id = normalize_uuid(user_id)
        league = SimRacingService._get_league(league_id)

        end_date = parse_timestamp(league.get("end_date"))
        if end_date and end_date < utc_now():
            raise ValidationFailedError("This league has already ended", errors={"league_id": league_id})

        accepted = league.get("registration_type")
        if accepted in (RegistrationType.SOLO.value, RegistrationType.TEAM.value) \
                and accepted != body.registration_type.value:
            raise ValidationFailedError(
                f"This league only accepts {accepted} registrations",
                errors={"registration_type": body.registration_type.value},
            )

        client = SupabaseClient.get_client()

        if body.registration_type == RegistrationType.TEAM:
            team = client.table(TEAMS).select("id, creator_id").eq("id", body.team_id).limit(1).execute()
            if not team.data:
                raise NotFoundError("Team", body.team_id)
            if str(team.data[0].get("creator_id")) != user_id:
                raise ForbiddenError("Only the team creator can register the team")
            table, identity = TEAM_PARTICIPANTS, {"team_id": body.team_id}
        else:
            table, identity = SOLO_PARTICIPANTS, {"user_id": user_id}

        duplicate = SupabaseClient.count(table, eq={"league_id": league_id, **identity})
        if duplicate:
            raise ConflictError("Already registered for this league", details={"league_id": league_id})

        max_participants = league.get("max_participants")
        if max_participants and SimRacingService._participant_count(league_id) >= int(max_participants):
            raise ConflictError(
                "This league is full",
                details={"league_id": league_id, "max_participants": max_participants},
            )

        row = {
            "league_id": league_id,
            **identity,
            "car_class": body.car_class,
            "car_number": body.car_number,
            "total_points": 0,
        }
        if body.registration_type == RegistrationType.TEAM:
            row["registered_by"] = user_id

        try:
            response = client.table(table).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError("Already registered for this league", details={"league_id": league_id})
            raise

        logger.info(f"{body.registration_type.value} registration for league {league_id} by {user_id}")
        return response.data[0] if response.data else row

    @staticmethod
    def get_standings(league_id: str) -> dict[str, list[dict[str, Any]]]:
        """Solo drivers by points, teams by registration date (newest first)."""
        SimRacingService._get_league(league_id)
        client = SupabaseClient.get_client()
        solo = (
            client.table(SOLO_PARTICIPANTS)
            .select("id, total_points, car_class, car_number, user:user_id(id, username, profile_picture)")
            .eq("league_id", league_id)
            .order("total_points", desc=True)
            .execute()
        )
        teams = (
            client.table(TEAM_PARTICIPANTS)
            .select("id, total_points, car_class, car_number, created_at, team:team_id(*)")
            .eq("league_id", league_id)
            .order("created_at", desc=True)
            .execute()
        )
        return {"solo": solo.data or [], "teams": teams.data or []}
