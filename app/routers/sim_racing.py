# =============================================================================
# app/routers/sim_racing.py - Sim Racing Endpoints
# =============================================================================
# Teams and league registration. Standings are public.
# =============================================================================

from fastapi import APIRouter, Depends, Path

from app.auth import get_current_user, AuthUser
from core.models.sim_racing import LeagueRegistrationCreate, TeamCreate
from core.services.sim_racing_service import SimRacingService

router = APIRouter()


@router.post("/teams", status_code=201)
async def create_team(
    body: TeamCreate,
    user: AuthUser = Depends(get_current_user),
):
    """
    Create a team with the signed-in user as creator and first driver.

    `member_emails` must resolve to 1-3 other sim racing users; emails
    that don't match a user are reported in `unresolved_emails`.
    """
    return {"success": True, **SimRacingService.create_team(user.id, user.email, body)}


@router.get("/teams/mine")
async def my_teams(user: AuthUser = Depends(get_current_user)):
    """Teams created by the signed-in user."""
    return {"data": SimRacingService.list_my_teams(user.id)}


@router.post("/leagues/{league_id}/register", status_code=201)
async def register_for_league(
    body: LeagueRegistrationCreate,
    league_id: str = Path(..., description="League ID"),
    user: AuthUser = Depends(get_current_user),
):
    """
    Register solo or with one of the user's teams.

    Raises:
        400: League ended or doesn't accept this registration type
        403: Team belongs to someone else
        404: League or team not found
        409: Already registered, or league full
    """
    participant = SimRacingService.register_for_league(user.id, league_id, body)
    return {"success": True, "data": participant}


@router.get("/leagues/{league_id}/standings")
async def league_standings(league_id: str = Path(..., description="League ID")):
    """Solo drivers by points and registered teams."""
    return {"data": SimRacingService.get_standings(league_id)}
